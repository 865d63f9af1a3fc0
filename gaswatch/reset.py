"""
Reset Command Issuer — asks the board to clear its alarm.

Writes the reset batch, gives the board a grace period to act, then
re-polls so the dashboard shows the post-reset values. Returns whether
the command was likely delivered; there is no automatic retry.
"""
import asyncio
import logging
from typing import Optional

from gaswatch.live_state import LiveState
from gaswatch.poller import Poller
from gaswatch.remote.client import RemoteClient, ResetResult

log = logging.getLogger("reset")


class ResetIssuer:

    def __init__(self, client: RemoteClient, poller: Poller,
                 live: LiveState, cfg: dict):
        self._client  = client
        self._poller  = poller
        self._live    = live
        self._grace   = float(cfg.get("grace_sec", 2.0))
        self._busy    = False
        self.last_result: Optional[ResetResult] = None

    @property
    def in_progress(self) -> bool:
        return self._busy

    async def issue_reset(self) -> bool:
        if self._busy:
            log.info("Reset already in progress, ignoring")
            return False
        self._busy = True
        self._live.set_reset_loading(True)
        try:
            result = await self._client.send_reset()
            self.last_result = result
            if not result.success:
                log.warning("Reset not delivered: all writes failed")
                return False
            if result.failed:
                log.warning(f"Reset partially delivered, failed: {', '.join(result.failed)}")

            await asyncio.sleep(self._grace)
            await self._poller.poll_once()
            log.info("Reset complete")
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error(f"Reset command failed: {e}")
            return False
        finally:
            self._busy = False
            self._live.set_reset_loading(False)
