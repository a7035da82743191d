"""Event relay from the chat core to a client transport.

Events are plain dicts with a ``type`` key. Sinks decide the wire
format: the SSE sink frames each event as ``data: <json>\\n\\n``, the
WebSocket sink sends the JSON text, and the collecting sink keeps the
dicts in memory for non-streaming callers and tests.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from fastapi import WebSocket

from services.chat.cancellation import CancelToken
from utils.errors import TransportClosed


def sse_frame(event: Dict[str, Any]) -> str:
	return f"data: {json.dumps(event)}\n\n"


class EventSink(Protocol):
	async def send_event(self, event: Dict[str, Any]) -> None: ...


class QueueSink:
	"""Feeds a `StreamingResponse` through an asyncio queue.

	`frames()` is handed to the response; when the client goes away the
	server stops iterating it and the sink is marked closed, so the next
	`send_event` raises `TransportClosed`.
	"""

	_DONE = object()

	def __init__(self) -> None:
		self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
		self.closed = False

	async def send_event(self, event: Dict[str, Any]) -> None:
		if self.closed:
			raise TransportClosed("Stream consumer is gone")
		self._queue.put_nowait(sse_frame(event))

	def finish(self) -> None:
		self._queue.put_nowait(self._DONE)

	async def frames(self) -> AsyncIterator[str]:
		try:
			while True:
				frame = await self._queue.get()
				if frame is self._DONE:
					break
				yield frame
		finally:
			self.closed = True


class WebSocketSink:
	def __init__(self, websocket: WebSocket, request_id: Any = None) -> None:
		self.websocket = websocket
		self.request_id = request_id

	async def send_event(self, event: Dict[str, Any]) -> None:
		payload = dict(event)
		if self.request_id is not None:
			payload["request_id"] = self.request_id
		try:
			await self.websocket.send_text(json.dumps(payload))
		except Exception as exc:
			raise TransportClosed("WebSocket send failed") from exc


class CollectingSink:
	def __init__(self) -> None:
		self.events: List[Dict[str, Any]] = []

	async def send_event(self, event: Dict[str, Any]) -> None:
		self.events.append(event)

	def of_type(self, event_type: str) -> List[Dict[str, Any]]:
		return [event for event in self.events if event.get("type") == event_type]


@dataclass
class _RelayState:
	closed: bool = False


class StreamingRelay:
	"""Write events to a sink, one at a time, never letting a write failure escape.

	After the first failed write the relay is closed and every later
	`emit` returns False without touching the sink. Relays created with
	`bind` share that closed state but additionally go quiet once their
	token is cancelled, so work abandoned by the deadline guard cannot
	interleave with the guard's own frames.
	"""

	def __init__(
		self,
		sink: EventSink,
		*,
		chunk_words: int = 5,
		chunk_delay_seconds: float = 0.05,
		keep_alive_every_chunks: int = 3,
		chunking: bool = True,
		_state: Optional[_RelayState] = None,
		_token: Optional[CancelToken] = None,
	) -> None:
		self.sink = sink
		self.chunk_words = max(1, chunk_words)
		self.chunk_delay_seconds = chunk_delay_seconds
		self.keep_alive_every_chunks = keep_alive_every_chunks
		self.chunking = chunking
		self._state = _state or _RelayState()
		self._token = _token

	@property
	def closed(self) -> bool:
		return self._state.closed

	@property
	def silenced(self) -> bool:
		return self._state.closed or (self._token is not None and self._token.cancelled)

	def bind(self, token: CancelToken) -> "StreamingRelay":
		return StreamingRelay(
			self.sink,
			chunk_words=self.chunk_words,
			chunk_delay_seconds=self.chunk_delay_seconds,
			keep_alive_every_chunks=self.keep_alive_every_chunks,
			chunking=self.chunking,
			_state=self._state,
			_token=token,
		)

	async def emit(self, event_type: str, **payload: Any) -> bool:
		"""Send one event. Returns False if it was dropped."""
		if self.silenced:
			return False
		event = {"type": event_type, **payload}
		try:
			await self.sink.send_event(event)
		except Exception as exc:
			self._state.closed = True
			logging.info("Client transport closed while sending %s: %s", event_type, exc)
			return False
		return True

	async def keep_alive(self, **payload: Any) -> bool:
		if not payload:
			payload = {"timestamp": int(time.time() * 1000)}
		return await self.emit("keep-alive", **payload)

	async def emit_final_text(self, text: str, *, source: Optional[str] = None) -> bool:
		"""Send the complete text first, then re-stream it in word chunks, then `complete`.

		The early ``complete_response`` frame means a client that loses the
		connection during chunking already has the full answer.
		"""
		extra = {"source": source} if source else {}
		if not await self.emit("complete_response", content=text, **extra):
			return False
		if self.chunking and text:
			words = text.split(" ")
			total = (len(words) + self.chunk_words - 1) // self.chunk_words
			for index, start in enumerate(range(0, len(words), self.chunk_words)):
				chunk = " ".join(words[start:start + self.chunk_words])
				if start + self.chunk_words < len(words):
					chunk += " "
				if not await self.emit("content", content=chunk, **extra):
					return False
				if index > 0 and self.keep_alive_every_chunks and index % self.keep_alive_every_chunks == 0:
					await self.keep_alive(chunk=index, total=total)
				if self.chunk_delay_seconds > 0:
					await asyncio.sleep(self.chunk_delay_seconds)
		return await self.emit("complete", content=text, **extra)
