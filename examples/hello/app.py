"""Hello World — the smallest conduit app.

One stage writes a greeting; the no-op terminal ends the chain.

Run:
    python app.py
"""

from conduit import App
from conduit.stages import StaticResponse

app = App()
app.use(StaticResponse("<h1>Hello from My First Middleware</h1>"))


if __name__ == "__main__":
    app.run()
