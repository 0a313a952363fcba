"""
Test Service for the Experiment Python SDK

This HTTP server wraps the ExperimentClient and exposes a standard interface
for the test harness to interact with.

Protocol:
- GET /  -> Health check
- POST / -> Execute command (init, fetch, metrics, close)
- DELETE / -> Cleanup/shutdown
"""

import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from experiment import ExperimentClient, ExperimentConfig, ExperimentUser

client: Optional[ExperimentClient] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Cleanup on shutdown
    global client
    if client:
        await client.close()
        client = None

app = FastAPI(lifespan=lifespan)


def make_response(
    variants: Optional[dict] = None,
    metrics: Optional[dict] = None,
    success: Optional[bool] = None,
    error: Optional[str] = None,
    message: Optional[str] = None,
) -> dict:
    resp: dict = {}
    if variants is not None:
        resp["variants"] = variants
    if metrics is not None:
        resp["metrics"] = metrics
    if success is not None:
        resp["success"] = success
    if error is not None:
        resp["error"] = error
    if message is not None:
        resp["message"] = message
    return resp


async def handle_command(cmd: dict) -> dict:
    global client
    command = cmd.get("command")

    if command == "init":
        config_data: Any = cmd.get("config")
        if config_data is None:
            return make_response(error="ValidationError", message="config is required")

        # Cleanup previous instance
        if client:
            await client.close()
            client = None

        try:
            config = ExperimentConfig.from_dict(config_data)
            client = ExperimentClient(config_data.get("apiKey", ""), config)
            return make_response(success=True)
        except Exception as e:
            return make_response(error=type(e).__name__, message=str(e))

    elif command == "fetch":
        if not client:
            return make_response(error="NotInitializedError", message="Client not initialized")

        user_data = cmd.get("user")
        user = ExperimentUser.from_dict(user_data) if user_data else None
        variants = await client.fetch(user)
        return make_response(
            variants={
                key: {"value": variant.value, "payload": variant.payload}
                for key, variant in variants.items()
            }
        )

    elif command == "metrics":
        if not client:
            return make_response(error="NotInitializedError", message="Client not initialized")

        return make_response(metrics=asdict(client.get_metrics()))

    elif command == "close":
        if client:
            await client.close()
            client = None
        return make_response(success=True)

    else:
        return make_response(error="UnknownCommand", message=f"Unknown command: {command}")


@app.get("/")
async def health_check():
    return {"success": True}


@app.post("/")
async def execute_command(request: Request):
    try:
        cmd = await request.json()
        result = await handle_command(cmd)
        return JSONResponse(content=result)
    except Exception as e:
        return JSONResponse(
            content=make_response(error="ParseError", message=str(e)),
            status_code=400,
        )


@app.delete("/")
async def cleanup():
    global client
    if client:
        await client.close()
        client = None
    return {"success": True}


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8007"))
    print(f"[sdk-python test-service] Listening on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="warning")
