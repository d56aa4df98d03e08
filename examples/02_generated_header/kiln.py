"""Generate a header from a data file, then compile against it.

Also copies a data file into the build tree and keeps the generator
statements in their own ninja file.
"""

import sys

kiln.pool("generators", 1)
kiln.reconfigure_on("VERSION")

version_h = kiln.command(
    "version.h",
    ["gen_version.py", "VERSION"],
    command=[sys.executable, kiln.src("gen_version.py"), kiln.src("VERSION"), kiln.out("version.h")],
    env={"LC_ALL": "C"},
    pool="generators",
    partition="generated",
)

main = kiln.compile(
    "main.o",
    source="main.c",
    flags=["-I", str(kiln.build_dir), "-DGREETING=Version is"],
    implicit_inputs=[version_h],
)
app = kiln.link("show_version", objects=[main])
kiln.copy("VERSION.txt", "VERSION", tags=["all"])

with kiln.project("demo"):
    kiln.alias("app", app, tags=["all"])
