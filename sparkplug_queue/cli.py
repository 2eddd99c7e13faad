import json
from typing import Annotated, Optional, TypedDict

import typer
from anystore.cli import ErrorHandler
from anystore.io import smart_write
from anystore.logging import configure_logging
from anystore.util import dump_json_model
from rich.console import Console

from sparkplug_queue import __version__
from sparkplug_queue.core.settings import Settings
from sparkplug_queue.exceptions import InvalidMessage, QueueError
from sparkplug_queue.model import QueuedMessage
from sparkplug_queue.storage import QueueStore

settings = Settings()
cli = typer.Typer(
    no_args_is_help=True,
    pretty_exceptions_enable=settings.debug,
    name="Sparkplug Queue",
)
console = Console(stderr=True)


class State(TypedDict):
    broker_id: str
    data_dir: str


STATE: State = {"broker_id": settings.broker_id, "data_dir": settings.data_dir}


def write_messages(messages: list[QueuedMessage], out: str) -> None:
    smart_write(out, b"".join(dump_json_model(m, newline=True) for m in messages))


class Queue(ErrorHandler):
    store: QueueStore | None = None

    def __enter__(self) -> QueueStore:
        super().__enter__()
        try:
            self.store = QueueStore(STATE["broker_id"], STATE["data_dir"])
            self.store.initialize()
        except QueueError as e:
            if settings.debug:
                raise e
            console.print(f"[red][bold]{e.__class__.__name__}[/bold]: {e}[/red]")
            raise typer.Exit(code=1)
        return self.store

    def __exit__(self, *args):
        if self.store is not None:
            self.store.close()
        return super().__exit__(*args)


@cli.callback(invoke_without_command=True)
def cli_sparkplug_queue(
    version: Annotated[Optional[bool], typer.Option(..., help="Show version")] = False,
    settings: Annotated[
        Optional[bool], typer.Option(..., help="Show current settings")
    ] = False,
    broker: Annotated[
        str | None, typer.Option("-b", "--broker", help="Broker identity")
    ] = None,
    data_dir: Annotated[
        str | None, typer.Option(..., help="Directory of the queue databases")
    ] = None,
):
    if version:
        console.print(__version__)
        raise typer.Exit()
    settings_ = Settings()
    configure_logging(level=settings_.log_level)
    STATE["broker_id"] = broker or settings_.broker_id
    STATE["data_dir"] = data_dir or settings_.data_dir
    if settings:
        console.print(settings_)
        console.print(STATE)
        raise typer.Exit()


@cli.command("length")
def cli_length():
    """
    Show the number of pending messages
    """
    with Queue() as store:
        console.print(store.length())


@cli.command("list")
def cli_list(
    limit: Annotated[
        int, typer.Option("-l", "--limit", help="Maximum number of messages")
    ] = settings.default_limit,
    out_uri: Annotated[str, typer.Option("-o")] = "-",
):
    """
    Write pending messages (oldest first) as json lines without removing them
    """
    with Queue() as store:
        write_messages(store.list_messages(limit), out_uri)


@cli.command("drain")
def cli_drain(
    limit: Annotated[
        int, typer.Option("-l", "--limit", help="Maximum number of messages")
    ] = settings.default_limit,
    out_uri: Annotated[str, typer.Option("-o")] = "-",
):
    """
    Write pending messages (oldest first) as json lines and remove them from
    the queue once written
    """
    with Queue() as store, store.drain(limit) as batch:
        write_messages(batch.messages, out_uri)
        for message in batch:
            batch.ack(message)


@cli.command("enqueue")
def cli_enqueue(
    topic: str,
    payload: Annotated[str, typer.Option(help="Json payload")] = "null",
    qos: Annotated[int, typer.Option(help="Quality of service level")] = 0,
    retain: Annotated[bool, typer.Option(help="Retain flag")] = False,
):
    """
    Add a message to the queue
    """
    with Queue() as store:
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise InvalidMessage(f"Invalid json payload: {e}") from e
        console.print(store.enqueue(topic, data, qos=qos, retain=retain))


@cli.command("remove")
def cli_remove(ids: list[int]):
    """
    Remove messages by their ids
    """
    with Queue() as store:
        if len(ids) == 1:
            store.remove_by_id(ids[0])
        else:
            store.remove_by_ids(ids)


@cli.command("remove-oldest")
def cli_remove_oldest():
    """
    Remove the oldest pending message
    """
    with Queue() as store:
        store.remove_oldest()
