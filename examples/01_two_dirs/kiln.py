"""A program in app/ linking an object compiled in liba/."""

kiln.extend_config({"toolchain": {"cflags": ["-O2"]}})

kiln.subdir("liba")
kiln.subdir("app")
