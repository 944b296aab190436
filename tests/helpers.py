"""
テスト用の偽の音声認識エンジンとモック通信
"""
import asyncio
import json
import time
from typing import Callable, List

import httpx

from word_weaver.services.feedback_client import FeedbackClient


class FakeSpeechBackend:
    """音声認識エンジンの代わりにテストから書き起こしを送り込むためのクラス"""

    def __init__(self, on_transcript, on_session_ended, on_error, start_delay: float = 0.0, stop_delay: float = 0.0) -> None:
        self.on_transcript = on_transcript
        self.on_session_ended = on_session_ended
        self.on_error = on_error
        self.start_delay = start_delay
        self.stop_delay = stop_delay
        self.started = False
        self.stopped = False

    def start(self) -> None:
        # 実際のエンジンと同じく起動完了までブロックする
        time.sleep(self.start_delay)
        self.started = True

    def stop(self) -> None:
        time.sleep(self.stop_delay)
        self.stopped = True

    def say(self, text: str, is_final: bool = True) -> None:
        """書き起こしの更新を発生させる"""
        self.on_transcript(text, is_final)


class FakeBackendFactory:
    """作成したFakeSpeechBackendを記録するファクトリー"""

    def __init__(self, start_delay: float = 0.0, stop_delay: float = 0.0) -> None:
        self.start_delay = start_delay
        self.stop_delay = stop_delay
        self.backends: List[FakeSpeechBackend] = []

    def __call__(self, on_transcript, on_session_ended, on_error) -> FakeSpeechBackend:
        backend = FakeSpeechBackend(
            on_transcript, on_session_ended, on_error, self.start_delay, self.stop_delay
        )
        self.backends.append(backend)
        return backend

    @property
    def latest(self) -> FakeSpeechBackend:
        return self.backends[-1]


def gemini_reply(text: str, status_code: int = 200) -> httpx.Response:
    """generateContent形式の応答を作成"""
    body = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return httpx.Response(status_code, content=json.dumps(body).encode("utf-8"))


class RecordingHandler:
    """httpx.MockTransport用のハンドラー（受け取ったリクエストを記録する）"""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.responder = responder
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def make_feedback_client(
    handler: Callable[[httpx.Request], httpx.Response], timeout: float = 5.0
) -> FeedbackClient:
    """モック通信を使うFeedbackClientを作成"""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FeedbackClient(
        api_key="test_key",
        endpoint="https://example.test/v1beta/models/test:generateContent",
        timeout=timeout,
        http_client=http_client,
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """条件が満たされるまでイベントループを回す"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("条件が時間内に満たされませんでした")
        await asyncio.sleep(0.005)


class LoopStallMonitor:
    """一定間隔で起きるコルーチンを動かし、イベントループが止まった最長時間を記録する"""

    def __init__(self, interval: float = 0.01) -> None:
        self.interval = interval
        self.longest_gap = 0.0
        self._task: asyncio.Task | None = None

    async def _tick(self) -> None:
        loop = asyncio.get_running_loop()
        last = loop.time()
        while True:
            await asyncio.sleep(self.interval)
            now = loop.time()
            self.longest_gap = max(self.longest_gap, now - last)
            last = now

    async def __aenter__(self) -> "LoopStallMonitor":
        self._task = asyncio.create_task(self._tick())
        await asyncio.sleep(0)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        assert self._task is not None
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
