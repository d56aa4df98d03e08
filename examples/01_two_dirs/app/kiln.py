main = kiln.compile("main.o", source="main.c", flags=["-I", kiln.src("../liba")])
greet = kiln.find("greet$")

kiln.link("hello", objects=[main, *greet.metadata["objects"]], tags=["all"])
