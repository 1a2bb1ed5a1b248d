from dataclasses import dataclass
from datetime import timedelta

from rich.pretty import pprint

from argosy import *


@dataclass
class Fetch:
    url: str = arg("positional", help="address to fetch")
    timeout: timedelta = arg(default="30s", help="give up after this long")
    retries: int = arg(default="3")
    insecure: bool = False


@subcommand("fetch", help="fetch a resource")
def fetch(context):
    options = Fetch()
    context.parse(*from_struct(options))
    context.defer(lambda: pprint(options))


@subcommand("digest", help="print bytes given as hex")
def digest(context):
    data = positional("data", list[Hex], help="hex encoded chunks")
    context.parse(data)
    context.defer(lambda: pprint([bytes(chunk) for chunk in data.value]))


if __name__ == '__main__':
    main(flag("verbose", short="v"), fetch, digest)
