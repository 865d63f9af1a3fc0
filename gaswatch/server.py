"""
GasWatch Server  —  FastAPI + WebSocket surface for dashboard clients.

Pushes live state and gas alerts to every connected client and takes
operator intents (reset, archive, delete) back into the core.
Rendering is entirely the client's business.
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from gaswatch import config, simulator
from gaswatch.models import GasAlert
from gaswatch.remote.client import ALARMS_PATH
from gaswatch.services import Services

log = logging.getLogger("server")


# ── Connection manager ────────────────────────────────────────
class ConnectionManager:
    def __init__(self):
        self.active: Set[WebSocket] = set()

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active.add(ws)

    def disconnect(self, ws: WebSocket):
        self.active.discard(ws)

    async def broadcast(self, msg: dict):
        if not self.active:
            return
        data = json.dumps(msg)
        dead = set()
        for ws in self.active:
            try:
                await ws.send_text(data)
            except Exception:
                dead.add(ws)
        self.active -= dead


_pending: Set[asyncio.Task] = set()


def _schedule(coro):
    """Run a coroutine on the current loop from a sync callback."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        return
    task = loop.create_task(coro)
    _pending.add(task)
    task.add_done_callback(_pending.discard)


def create_app(services: Services) -> FastAPI:
    manager = ConnectionManager()
    svc     = services

    def state_msg() -> dict:
        return {"type": "state_update", "data": svc.live.snapshot(svc.threshold)}

    def logs_msg() -> dict:
        return {"type": "logs", "data": [e.to_dict() for e in svc.log_store.list_all()]}

    def archive_msg() -> dict:
        return {"type": "archive", "data": [e.to_dict() for e in svc.archive.list_all()]}

    def on_state(_snapshot: dict):
        _schedule(manager.broadcast(state_msg()))

    def on_alert(alert: GasAlert):
        async def _push():
            await manager.broadcast({"type": "gas_alert", "data": alert.to_dict()})
            await manager.broadcast(logs_msg())
        _schedule(_push())

    async def push_remote_alarms():
        if not manager.active:
            return
        alarms = await svc.client.list_remote_alarms(100)
        await manager.broadcast({"type": "remote_alarms",
                                 "data": [e.to_dict() for e in alarms]})

    # ── App lifespan ──────────────────────────────────────────
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        loop = asyncio.get_running_loop()

        # Stream callbacks arrive on the transport's thread
        def on_remote_alarms(_path: str, _data):
            try:
                loop.call_soon_threadsafe(lambda: _schedule(push_remote_alarms()))
            except RuntimeError:
                log.debug("Remote alarm change after loop closed, ignored")

        svc.live.add_listener(on_state)
        svc.notifier.add_sink(on_alert)
        alarms_sub = svc.store.subscribe(ALARMS_PATH, on_remote_alarms)
        tasks = []
        if svc.simulate:
            tasks.append(asyncio.create_task(
                simulator.run(svc.store, config.SIMULATOR, svc.threshold)))
        svc.poller.start()
        yield
        alarms_sub.close()
        svc.poller.stop()
        for t in tasks:
            t.cancel()
        svc.live.remove_listener(on_state)
        svc.notifier.remove_sink(on_alert)
        svc.store.close()

    app = FastAPI(title="GasWatch", lifespan=lifespan)
    app.state.services = svc
    app.state.manager  = manager

    # ── REST ──────────────────────────────────────────────────
    @app.get("/api/state")
    async def get_state():
        return svc.live.snapshot(svc.threshold)

    @app.get("/api/logs")
    async def get_logs():
        return [e.to_dict() for e in svc.log_store.list_all()]

    @app.delete("/api/logs/{entry_id}")
    async def delete_log(entry_id: str):
        if not svc.log_store.remove_by_id(entry_id):
            raise HTTPException(status_code=404, detail="Log entry not found")
        return {"success": True}

    @app.delete("/api/logs")
    async def clear_logs():
        svc.log_store.clear()
        return {"success": True}

    @app.post("/api/logs/{entry_id}/archive")
    async def archive_log(entry_id: str):
        archived = svc.archive.archive_from_log(svc.log_store, entry_id)
        if archived is None:
            raise HTTPException(status_code=404, detail="Log entry not found")
        return archived.to_dict()

    @app.get("/api/archive")
    async def get_archive():
        return [e.to_dict() for e in svc.archive.list_all()]

    @app.delete("/api/archive/{entry_id}")
    async def delete_archive(entry_id: str):
        if not svc.archive.remove_by_id(entry_id):
            raise HTTPException(status_code=404, detail="Archive entry not found")
        return {"success": True}

    @app.delete("/api/archive")
    async def clear_archive():
        svc.archive.clear()
        return {"success": True}

    @app.get("/api/readings")
    async def get_readings(limit: int = config.READINGS["limit"]):
        limit = max(1, min(limit, 500))
        rows  = await svc.client.get_readings(limit)
        return [r.to_dict() for r in rows]

    @app.get("/api/remote/alarms")
    async def get_remote_alarms(limit: int = 100):
        return [e.to_dict() for e in await svc.client.list_remote_alarms(limit)]

    @app.post("/api/remote/alarms/{entry_id}/archive")
    async def archive_remote_alarm(entry_id: str):
        return {"success": await svc.client.archive_remote_alarm(entry_id)}

    @app.get("/api/remote/archives")
    async def get_remote_archives():
        return [e.to_dict() for e in await svc.client.list_remote_archives()]

    @app.delete("/api/remote/archives/{entry_id}")
    async def delete_remote_archive(entry_id: str):
        return {"success": await svc.client.delete_remote_archive(entry_id)}

    @app.post("/api/reset")
    async def reset():
        return {"success": await svc.reset.issue_reset()}

    # ── WebSocket endpoint ────────────────────────────────────
    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        await manager.connect(ws)

        # Send initial state immediately on connect
        await ws.send_text(json.dumps(state_msg()))
        await ws.send_text(json.dumps(logs_msg()))

        try:
            while True:
                raw = await ws.receive_text()
                try:
                    msg = json.loads(raw)
                except ValueError:
                    await ws.send_text(json.dumps({"type": "error", "message": "invalid JSON"}))
                    continue
                await handle_command(ws, msg)
        except WebSocketDisconnect:
            manager.disconnect(ws)
        except Exception as e:
            log.warning(f"WebSocket error: {e}")
            manager.disconnect(ws)

    # ── Command handler ───────────────────────────────────────
    async def handle_command(ws: WebSocket, msg: dict):
        cmd      = msg.get("cmd") if isinstance(msg, dict) else None
        entry_id = str(msg.get("id", "")) if isinstance(msg, dict) else ""

        if cmd == "reset":
            await ws.send_text(json.dumps({"type": "cmd_ack", "cmd": "reset", "status": "sending"}))
            ok = await svc.reset.issue_reset()
            await manager.broadcast({"type": "cmd_result", "cmd": "reset", "success": ok,
                                     "message": "Reset sent" if ok else "Reset not delivered"})

        elif cmd == "archive":
            archived = svc.archive.archive_from_log(svc.log_store, entry_id)
            await ws.send_text(json.dumps({"type": "cmd_result", "cmd": "archive",
                                           "success": archived is not None, "id": entry_id}))
            await manager.broadcast(logs_msg())
            await manager.broadcast(archive_msg())

        elif cmd == "delete_log":
            ok = svc.log_store.remove_by_id(entry_id)
            await ws.send_text(json.dumps({"type": "cmd_result", "cmd": "delete_log",
                                           "success": ok, "id": entry_id}))
            await manager.broadcast(logs_msg())

        elif cmd == "delete_archive":
            ok = svc.archive.remove_by_id(entry_id)
            await ws.send_text(json.dumps({"type": "cmd_result", "cmd": "delete_archive",
                                           "success": ok, "id": entry_id}))
            await manager.broadcast(archive_msg())

        elif cmd == "get_logs":
            await ws.send_text(json.dumps(logs_msg()))

        elif cmd == "get_archive":
            await ws.send_text(json.dumps(archive_msg()))

        elif cmd == "get_state":
            await ws.send_text(json.dumps(state_msg()))

        else:
            await ws.send_text(json.dumps({"type": "error", "message": f"unknown cmd {cmd!r}"}))

    return app
