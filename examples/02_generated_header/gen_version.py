"""Write a C header defining VERSION from a one-line file."""

import sys

with open(sys.argv[1]) as f:
    version = f.read().strip()

with open(sys.argv[2], "w") as f:
    f.write(f'#define VERSION "{version}"\n')
