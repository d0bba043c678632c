"""
Command-line interface for the RabbitMQ Management API client.
"""

import json
import os
import sys
from typing import NoReturn, Optional

import click
from dotenv import load_dotenv

from .client import RabbitStats
from .config import Settings
from .errors import ManagementAPIError
from .metrics import start_metrics_server
from .utils.logging import setup_logging


def _echo_response(response) -> None:
    if not response.content:
        click.echo(json.dumps({"status": response.status_code}))
        return
    try:
        payload = response.json()
    except ValueError:
        click.echo(response.text)
        return
    click.echo(json.dumps(payload, indent=2))


def _fail(exc: ManagementAPIError) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    if exc.body:
        click.echo(exc.body, err=True)
    sys.exit(1)


def _call(ctx: click.Context, operation: str, *args, **kwargs) -> None:
    client: RabbitStats = ctx.obj["client"]
    try:
        response = getattr(client, operation)(*args, **kwargs)
    except ManagementAPIError as exc:
        _fail(exc)
    _echo_response(response)


@click.group()
@click.version_option(package_name="rabbit-stats")
@click.option("--url", envvar="RABBITMQ_MGMT_URL", help="Management API base URL")
@click.option("--user", envvar="RABBITMQ_USER", help="Basic-auth user")
@click.option("--password", envvar="RABBITMQ_PASS", help="Basic-auth password")
@click.option("--metrics-port", envvar="METRICS_PORT", type=int, help="Expose Prometheus /metrics on this port")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def main(ctx: click.Context, url: Optional[str], user: Optional[str], password: Optional[str],
         metrics_port: Optional[int], verbose: bool):
    """Inspect and administer a RabbitMQ broker over its Management API"""
    settings = Settings.from_env()
    setup_logging(level="DEBUG" if verbose else settings.log_level)
    if metrics_port:
        start_metrics_server(metrics_port)
    ctx.obj = {"client": ctx.with_resource(RabbitStats(url, user, password))}


def _listing(name: str, operation: str, vhost_operation: Optional[str] = None, help_text: str = ""):
    """Register a read-only listing command, optionally scoped by ``--vhost``."""

    if vhost_operation is None:
        @main.command(name=name, help=help_text)
        @click.pass_context
        def command(ctx: click.Context):
            _call(ctx, operation)
    else:
        @main.command(name=name, help=help_text)
        @click.option("--vhost", help="Restrict the listing to one virtual host")
        @click.pass_context
        def command(ctx: click.Context, vhost: Optional[str]):
            if vhost is None:
                _call(ctx, operation)
            else:
                _call(ctx, vhost_operation, vhost)

    return command


_listing("overview", "get_overview", help_text="Cluster-wide overview.")
_listing("extensions", "get_extensions", help_text="Management UI extensions.")
_listing("nodes", "get_nodes", help_text="Cluster nodes.")
_listing("connections", "get_connections", help_text="Open client connections.")
_listing("channels", "get_channels", help_text="Open channels.")
_listing("consumers", "get_consumers", "get_vhost_consumers", "Consumers.")
_listing("exchanges", "get_exchanges", "get_vhost_exchanges", "Exchanges.")
_listing("queues", "get_queues", "get_vhost_queues", "Queues.")
_listing("bindings", "get_bindings", "get_vhost_bindings", "Bindings.")
_listing("vhosts", "get_vhosts", help_text="Virtual hosts.")
_listing("users", "get_users", help_text="Users.")
_listing("policies", "get_policies", help_text="Policies.")
_listing("whoami", "get_current_user", help_text="The authenticated user.")


@main.command()
@click.argument("vhost")
@click.argument("name")
@click.pass_context
def queue(ctx: click.Context, vhost: str, name: str):
    """Show a single queue."""
    _call(ctx, "get_vhost_queue", vhost, name)


@main.command("purge-queue")
@click.argument("vhost")
@click.argument("name")
@click.pass_context
def purge_queue(ctx: click.Context, vhost: str, name: str):
    """Drop all ready messages from a queue."""
    _call(ctx, "delete_vhost_queue_contents", vhost, name)


@main.command("close-connection")
@click.argument("name")
@click.pass_context
def close_connection(ctx: click.Context, name: str):
    """Force-close a client connection."""
    _call(ctx, "delete_connection", name)


@main.command()
@click.option("--vhost", default=lambda: os.getenv("RABBITMQ_SETUP_VHOST", "/prod"), show_default="/prod")
@click.option("--app-user", default=lambda: os.getenv("RABBITMQ_SETUP_USER", "app-user"), show_default="app-user")
@click.option("--app-pass", default=lambda: os.getenv("RABBITMQ_SETUP_PASS", "change-me"), show_default="change-me")
@click.option("--tags", default="", help="Comma-separated user tags")
@click.option("--configure", default=lambda: os.getenv("RABBITMQ_PERMISSIONS_CONFIGURE", ".*"), show_default=".*")
@click.option("--write", default=lambda: os.getenv("RABBITMQ_PERMISSIONS_WRITE", ".*"), show_default=".*")
@click.option("--read", default=lambda: os.getenv("RABBITMQ_PERMISSIONS_READ", ".*"), show_default=".*")
@click.pass_context
def setup(ctx: click.Context, vhost: str, app_user: str, app_pass: str, tags: str,
          configure: str, write: str, read: str):
    """Create a vhost, a user, and the user's permissions on that vhost."""
    client: RabbitStats = ctx.obj["client"]
    try:
        client.put_vhost(vhost)
        client.put_user(app_user, {"password": app_pass, "tags": tags})
        client.set_user_permissions(
            app_user, vhost, {"configure": configure, "write": write, "read": read}
        )
    except ManagementAPIError as exc:
        _fail(exc)
    click.echo(json.dumps({"vhost": vhost, "user": app_user, "tags": tags}, indent=2))


def run() -> None:
    """Console-script entrypoint; loads ``.env`` before parsing options."""
    load_dotenv()
    main()


if __name__ == "__main__":
    run()
