import asyncio
import concurrent.futures
import logging
import threading

from telethon import TelegramClient, events
from telethon.errors import RPCError

from liveness import ALIVE, DEAD, ProtocolError

logger = logging.getLogger(__name__)

PROBE_MESSAGE = "/start"


class PingTracker:
    """Pending probes keyed by the bot's Telegram id.

    Only touched from the probe client's event loop, so it needs no lock.
    """

    def __init__(self):
        self._waiters = {}

    def expect(self, telegram_id: int) -> asyncio.Event:
        waiter = asyncio.Event()
        self._waiters.setdefault(telegram_id, set()).add(waiter)
        logger.debug(f"Waiting for a reply from {telegram_id}")
        return waiter

    def resolve(self, telegram_id: int) -> bool:
        """Wakes every probe waiting on `telegram_id`; returns whether any was."""
        waiters = self._waiters.get(telegram_id)
        if not waiters:
            return False
        logger.debug(f"Reply from {telegram_id} answers {len(waiters)} pending ping(s)")
        for waiter in waiters:
            waiter.set()
        return True

    def discard(self, telegram_id: int, waiter: asyncio.Event):
        waiters = self._waiters.get(telegram_id)
        if waiters is None:
            return
        waiters.discard(waiter)
        if not waiters:
            del self._waiters[telegram_id]

    def __len__(self):
        return sum(len(w) for w in self._waiters.values())


class TelegramProbeClient:
    """Probes bots through a Telegram user session running on its own thread."""

    def __init__(self, api_id: int, api_hash: str, session: str = "telebotping",
                 reply_timeout: float = 2.0, probe_timeout: float = 15.0):
        self.api_id = api_id
        self.api_hash = api_hash
        self.session = session
        self.reply_timeout = reply_timeout
        self.probe_timeout = probe_timeout
        self.tracker = PingTracker()
        self._client = None
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name="telegram-probe", daemon=True)

    # --- Lifecycle ---
    def start(self):
        """Starts the event loop thread, then connects and signs in."""
        self._thread.start()
        self._submit(self._connect()).result()

    def stop(self):
        if not self._thread.is_alive():
            if not self._loop.is_closed():
                self._loop.close()
            return
        if self._client is not None:
            try:
                self._submit(self._client.disconnect()).result(timeout=self.probe_timeout)
            except (concurrent.futures.TimeoutError, OSError) as e:
                logger.warning(f"Telegram client did not disconnect cleanly: {e}")
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()
        logger.info("Telegram probe client stopped.")

    async def _connect(self):
        self._client = TelegramClient(self.session, self.api_id, self.api_hash)
        self._client.add_event_handler(self._on_message, events.NewMessage(incoming=True))
        await self._client.start()
        me = await self._client.get_me()
        name = f"@{me.username}" if me.username else me.first_name
        logger.info(f"Signed in to Telegram as {name}.")

    def _submit(self, coro) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    # --- Probing ---
    def probe(self, bot_identity: str):
        """Sends the probe message to `bot_identity` and waits for its answer."""
        future = self._submit(self._probe(bot_identity))
        try:
            return future.result(timeout=self.probe_timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.warning(f"Probe of {bot_identity} exceeded {self.probe_timeout}s")
            return ProtocolError("probe timed out")

    async def _probe(self, bot_identity):
        try:
            entity = await self._client.get_entity(bot_identity)
        except (ValueError, RPCError) as e:
            return ProtocolError(f"Cannot resolve `{bot_identity}`: {e}")
        if not getattr(entity, "bot", False):
            return ProtocolError(f"`{bot_identity}` is not a bot account")

        waiter = self.tracker.expect(entity.id)
        try:
            try:
                await self._client.send_message(entity, PROBE_MESSAGE)
            except (RPCError, OSError) as e:
                return ProtocolError(f"Cannot send to `{bot_identity}`: {e}")
            try:
                await asyncio.wait_for(waiter.wait(), timeout=self.reply_timeout)
            except asyncio.TimeoutError:
                return DEAD
            return ALIVE
        finally:
            self.tracker.discard(entity.id, waiter)

    async def _on_message(self, event):
        if event.is_private and event.sender_id is not None:
            self.tracker.resolve(event.sender_id)
