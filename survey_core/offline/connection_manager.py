# =============================================================================
# survey_core/offline/connection_manager.py
# Connection Status Detection and Reconnect Events
# =============================================================================
"""
ConnectionManager - decides whether a submission takes the offline path and
tells subscribers when the device comes back online.

Features:
- Device reachability probe (public DNS resolvers + Supabase host)
- Explicit offline mode from ConnectivitySettings
- Reconnect subscriptions (fired once per offline -> online transition)
- Background polling thread
"""

from __future__ import annotations
import itertools
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse
import logging

from survey_core.config import ConnectivitySettings

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Device-level connection states."""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"         # No signal yet, or the probe is unavailable


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    signal_available: bool = True
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    reconnect_count: int = 0
    error_message: Optional[str] = None


class NetworkProbe:
    """
    TCP reachability check against public DNS resolvers and, when
    configured, the Supabase host.
    """

    HOSTS: List[Tuple[str, int]] = [
        ("8.8.8.8", 53),          # Google DNS
        ("1.1.1.1", 53),          # Cloudflare DNS
        ("208.67.222.222", 53),   # OpenDNS
    ]
    CONNECTION_TIMEOUT = 5

    def __init__(self, supabase_url: Optional[str] = None, timeout: float = CONNECTION_TIMEOUT):
        self.supabase_url = supabase_url
        self.timeout = timeout

    def _can_connect(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.timeout):
                return True
        except OSError:
            return False

    def _check_internet(self) -> bool:
        return any(self._can_connect(host, port) for host, port in self.HOSTS)

    def _check_supabase(self) -> bool:
        if not self.supabase_url:
            # No Supabase configured - internet reachability is all we can test
            return True
        parsed = urlparse(self.supabase_url)
        if not parsed.hostname:
            return False
        return self._can_connect(parsed.hostname, parsed.port or 443)

    def __call__(self) -> bool:
        return self._check_internet() and self._check_supabase()


class ConnectionManager:
    """
    Connectivity monitor for the survey kiosk.

    Usage:
        manager = get_connection_manager()
        if manager.is_offline_path():
            # queue locally
        token = manager.subscribe(lambda: engine.drain_queue())
    """

    # Configuration
    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline

    def __init__(
        self,
        settings: Optional[ConnectivitySettings] = None,
        probe: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            settings: Explicit connectivity preferences (offline mode)
            probe: Callable returning True when the device can reach the
                network. None means no device signal is available, in which
                case the device is assumed to be online.
        """
        self._settings = settings or ConnectivitySettings()
        self._probe = probe
        self._state = ConnectionState(signal_available=probe is not None)
        self._last_observed: Optional[bool] = None
        self._handlers: Dict[int, Callable[[], None]] = {}
        self._token_counter = itertools.count(1)
        self._state_lock = threading.Lock()
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def settings(self) -> ConnectivitySettings:
        return self._settings

    @property
    def is_device_online(self) -> bool:
        """Unknown status counts as online so submissions are never blocked."""
        return self._state.status != ConnectionStatus.OFFLINE

    @property
    def offline_mode(self) -> bool:
        return self._settings.offline_mode

    def apply_settings(self, settings: ConnectivitySettings) -> None:
        """
        Replace the explicit connectivity settings.

        Turning offline mode off does not fire reconnect handlers.
        """
        if settings.offline_mode != self._settings.offline_mode:
            logger.info(f"Offline mode {'enabled' if settings.offline_mode else 'disabled'}")
        self._settings = settings

    def is_offline_path(self) -> bool:
        """True when submissions must go to the local queue."""
        return self._settings.offline_mode or not self.is_device_online

    # =========================================================================
    # OBSERVATIONS
    # =========================================================================

    def check_connection(self) -> ConnectionState:
        """
        Poll the device probe once and record the result.

        Returns:
            Updated ConnectionState
        """
        if self._probe is None:
            return self._state

        try:
            reachable = bool(self._probe())
        except Exception as e:
            logger.debug(f"Connectivity probe failed, assuming online: {e}")
            with self._state_lock:
                self._state.signal_available = False
                self._state.status = ConnectionStatus.UNKNOWN
                self._state.last_check = datetime.now()
                self._state.error_message = str(e)
            return self._state

        self.notify_network_change(reachable)
        return self._state

    def notify_network_change(self, online: bool) -> None:
        """
        Record a device-level network observation (from the probe or a host
        environment event). Fires reconnect handlers on offline -> online.
        """
        reconnected = False
        with self._state_lock:
            old_status = self._state.status
            now = datetime.now()
            self._state.signal_available = True
            self._state.last_check = now
            if online:
                self._state.status = ConnectionStatus.ONLINE
                self._state.last_online = now
                self._state.consecutive_failures = 0
                self._state.error_message = None
            else:
                self._state.status = ConnectionStatus.OFFLINE
                self._state.consecutive_failures += 1

            reconnected = online and self._last_observed is False
            self._last_observed = online
            if reconnected:
                self._state.reconnect_count += 1

        if old_status != self._state.status:
            logger.info(f"Connection status changed: {old_status.value} -> {self._state.status.value}")

        if reconnected:
            logger.info("Connection restored, notifying reconnect subscribers")
            self._notify_reconnect()

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, handler: Callable[[], None]) -> int:
        """
        Register a reconnect handler.

        Returns:
            Token for unsubscribe()
        """
        token = next(self._token_counter)
        with self._state_lock:
            self._handlers[token] = handler
        return token

    def on_reconnect(self, callback: Callable[[], None]) -> int:
        """Alias of subscribe()."""
        return self.subscribe(callback)

    def unsubscribe(self, token: int) -> bool:
        """Remove a reconnect handler. Unknown tokens are ignored."""
        with self._state_lock:
            return self._handlers.pop(token, None) is not None

    def _notify_reconnect(self) -> None:
        with self._state_lock:
            handlers = list(self._handlers.values())
        for handler in handlers:
            try:
                handler()
            except Exception as e:
                logger.error(f"Error in reconnect handler: {e}", exc_info=True)

    # =========================================================================
    # BACKGROUND MONITORING
    # =========================================================================

    def start_monitoring(self) -> None:
        """Start background connection monitoring."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return
        if self._probe is None:
            logger.info("No connectivity probe available; assuming online")
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="ConnectionMonitor"
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        while not self._stop_monitoring.is_set():
            interval = (
                self.CHECK_INTERVAL_OFFLINE
                if self._state.status == ConnectionStatus.OFFLINE
                else self.CHECK_INTERVAL_ONLINE
            )
            if self._stop_monitoring.wait(timeout=interval):
                break
            try:
                self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "offline_mode": self._settings.offline_mode,
            "offline_path": self.is_offline_path(),
            "signal_available": self._state.signal_available,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "reconnects": self._state.reconnect_count,
            "error": self._state.error_message,
        }


# Singleton accessor
_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager(
    settings: Optional[ConnectivitySettings] = None,
    supabase_url: Optional[str] = None,
    start_monitoring: bool = True,
) -> ConnectionManager:
    """
    Get the global ConnectionManager instance.

    The first call performs an initial check and starts background monitoring.
    """
    global _connection_manager
    if _connection_manager is None:
        manager = ConnectionManager(settings, probe=NetworkProbe(supabase_url))
        manager.check_connection()
        if start_monitoring:
            manager.start_monitoring()
        logger.info(f"ConnectionManager initialized. Status: {manager.status.value}")
        _connection_manager = manager
    return _connection_manager
