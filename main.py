import sys

from rich.pretty import pprint

from gnuflag import *

flags = FlagSet(colorful=True)

verbose = flags.bool("verbose", "v", False, "print every step")
output = flags.string("output", "o", "", "write the result to this file")
jobs = flags.uint32("jobs", "j", 1, "number of parallel jobs")
ratio = flags.float("ratio", "", 0.5, "compression ratio")


if __name__ == '__main__':
    flags.parse(sys.argv)
    pprint({flag.name: flag.value.value for flag in flags.formal.values()})
    pprint(flags.args())
