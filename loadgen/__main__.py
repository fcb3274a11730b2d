# loadgen/__main__.py
from loadgen.cli import run

run()
