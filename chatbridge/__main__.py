"""python -m chatbridge"""

from .cli.main import app

app(prog_name="chatbridge")
