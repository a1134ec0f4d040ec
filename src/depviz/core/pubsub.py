# src/depviz/core/pubsub.py
from __future__ import annotations

import enum
import threading
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

from depviz.core import log
from depviz.core.metrics import gauge_set, inc

Callback = Callable[..., Any]


class Handle(NamedTuple):
    """Token returned by subscribe(); keep it to unsubscribe later."""
    topic: str
    callback: Callback


class Unsubscribe(enum.Enum):
    REMOVED = "removed"
    TOPIC_NOT_FOUND = "topic_not_found"
    HANDLE_NOT_FOUND = "handle_not_found"

    def __bool__(self) -> bool:
        return self is Unsubscribe.REMOVED


def _fn_name(fn: Callback) -> str:
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)


class TopicDispatcher:
    """
    Synchronous in-process pub/sub keyed by topic name.

    Subscribers run in registration order on the publishing thread.
    publish() iterates over a snapshot of the subscriber list, so a
    subscriber may subscribe/unsubscribe/publish re-entrantly and the
    change only applies to later publishes. A subscriber raising is
    logged and does not stop the others.
    """

    def __init__(self, name: str = "depviz.pubsub"):
        self.name = name
        self.l = log.get(self.name)
        self._subs: Dict[str, List[Callback]] = {}
        self._lock = threading.RLock()

    def subscribe(self, topic: str, callback: Callback) -> Handle:
        with self._lock:
            subs = self._subs.setdefault(topic, [])
            subs.append(callback)
            count = len(subs)
        self.l.debug("subscribed topic=%s fn=%s", topic, _fn_name(callback))
        gauge_set("pubsub_subscribers", float(count), topic=topic)
        return Handle(topic, callback)

    def publish(self, topic: str, args: Sequence[Any] = (), scope: Optional[Any] = None) -> bool:
        with self._lock:
            subs = list(self._subs.get(topic, ()))
        inc("pubsub_publish_total", 1, topic=topic)
        if not subs:
            return True

        call_args = tuple(args or ())
        if scope is not None:
            call_args = (scope,) + call_args
        for fn in subs:
            try:
                fn(*call_args)
                inc("pubsub_deliver_total", 1, topic=topic)
            except Exception as e:
                inc("pubsub_error_total", 1, topic=topic)
                self.l.error("deliver error topic=%s fn=%s err=%s", topic, _fn_name(fn), e, exc_info=True)
        return True

    def unsubscribe(self, handle: Handle, remove_all: bool = False) -> Unsubscribe:
        """
        Remove every registration of handle.callback on handle.topic.

        With remove_all=True a match wipes the whole topic, other
        subscribers on it included. A topic emptied by a plain removal
        stays registered with no subscribers.
        """
        topic, callback = handle
        with self._lock:
            subs = self._subs.get(topic)
            if subs is None:
                outcome = Unsubscribe.TOPIC_NOT_FOUND
            else:
                kept = [fn for fn in subs if fn != callback]
                if len(kept) == len(subs):
                    outcome = Unsubscribe.HANDLE_NOT_FOUND
                else:
                    outcome = Unsubscribe.REMOVED
                    if remove_all:
                        del self._subs[topic]
                    else:
                        subs[:] = kept
            count = len(self._subs.get(topic, ()))

        if outcome is Unsubscribe.REMOVED:
            self.l.debug("unsubscribed topic=%s fn=%s remove_all=%s", topic, _fn_name(callback), remove_all)
            gauge_set("pubsub_subscribers", float(count), topic=topic)
        else:
            self.l.debug("unsubscribe miss topic=%s fn=%s outcome=%s", topic, _fn_name(callback), outcome.value)
        return outcome

    def reset(self) -> None:
        with self._lock:
            topics = list(self._subs)
            self._subs.clear()
        for topic in topics:
            gauge_set("pubsub_subscribers", 0.0, topic=topic)
        self.l.debug("reset (%d topics dropped)", len(topics))

    # introspection
    def topics(self) -> List[str]:
        with self._lock:
            return list(self._subs)

    def has_topic(self, topic: str) -> bool:
        with self._lock:
            return topic in self._subs

    def subscribers(self, topic: str) -> List[Callback]:
        with self._lock:
            return list(self._subs.get(topic, ()))
