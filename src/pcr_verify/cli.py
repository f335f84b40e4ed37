import json
from pathlib import Path
import click
from .logic import verify_container

@click.group()
def main():
    pass

@main.command("container")
@click.argument("path", type=click.Path(path_type=Path))
def container_cmd(path: Path):
    result = verify_container(path)
    click.echo(json.dumps(result, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    if result["status"] != "PASS":
        raise SystemExit(1)

if __name__ == "__main__":
    main()
