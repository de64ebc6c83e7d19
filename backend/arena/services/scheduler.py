import time
from datetime import datetime, timezone
from typing import Set, Tuple

from arena import db, socketio
from arena.errors import InvalidTransition
from arena.models import Round
from arena.services.games.versus import as_utc


_scheduled_close_keys: Set[Tuple[int, str]] = set()


def schedule_round_close(app, round_id: int) -> None:
    """Close a round automatically when its ``closes_at`` deadline passes.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (round_id, deadline)
    - Bets are refused after the deadline regardless of the timer
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    if not app.config.get('VERSUS_AUTO_CLOSE', True):
        return

    with app.app_context():
        rnd = db.session.get(Round, round_id)
        if not rnd or rnd.status != 'open' or rnd.closes_at is None:
            return
        deadline = as_utc(rnd.closes_at)
        key = (rnd.id, deadline.isoformat())
        if key in _scheduled_close_keys:
            app.logger.info(f"[timer-skip] round={rnd.id} deadline={deadline.isoformat()} already scheduled")
            return
        _scheduled_close_keys.add(key)
        delay = max(0.0, (deadline - datetime.now(timezone.utc)).total_seconds())
        app.logger.info(f"[timer-set] round={rnd.id} delay={delay:.1f}s deadline={deadline.isoformat()}")

    def _worker(rid: int, expected_key: Tuple[int, str], wait: float):
        time.sleep(wait)
        from arena.services.rounds import close_round
        with app.app_context():
            _scheduled_close_keys.discard(expected_key)
            current = db.session.get(Round, rid)
            if not current or current.closes_at is None:
                return
            if (current.id, as_utc(current.closes_at).isoformat()) != expected_key:
                app.logger.info(f"[timer-abort] round={rid} deadline moved")
                return
            try:
                close_round(rid)
                app.logger.info(f"[timer-fire] round={rid} closed at deadline")
            except InvalidTransition as exc:
                app.logger.info(f"[timer-abort] round={rid} {exc}")

    if app.config.get('TESTING'):
        _worker(round_id, key, delay)
    else:
        socketio.start_background_task(_worker, round_id, key, delay)
