from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse


async def weather():
    return {"temp": 72}


async def missing():
    raise HTTPException(status_code=404, detail="Not found")


async def stream():
    async def chunks():
        yield b'{"temp":'
        yield b"72}"

    return StreamingResponse(chunks(), media_type="application/json")


async def custom_header():
    return JSONResponse(
        {"temp": 72},
        headers={"X-Custom": "kept", "payment-response": "from-handler"},
    )


async def echo(request: Request):
    return await request.json()


def make_app(*middlewares) -> FastAPI:
    app = FastAPI()
    app.get("/health")(lambda: {"status": "ok"})
    app.get("/api/weather")(weather)
    app.get("/api/missing")(missing)
    app.get("/api/stream")(stream)
    app.get("/api/custom-header")(custom_header)
    app.post("/api/echo")(echo)
    for middleware in middlewares:
        app.middleware("http")(middleware)
    return app
