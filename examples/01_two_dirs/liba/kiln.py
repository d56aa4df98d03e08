greet = kiln.compile(
    "greet.o",
    source="greet.c",
    metadata={"objects": [kiln.out("greet.o")]},
)
kiln.alias("liba/greet", greet, inherit_metadata=["objects"])
