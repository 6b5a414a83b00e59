"""External tool probing, process execution and online service clients."""

from __future__ import annotations

from pathlib import Path
import sys
import tempfile
import unittest
from unittest.mock import patch

import httpx

from audiograb.adapters.capabilities import CapabilityProber, recommendations
from audiograb.adapters.online import CobaltService, OnlineServiceError
from audiograb.adapters.placeholder import frequency_for, render_tone
from audiograb.adapters.process import ProcessError, ProcessResult, ProcessTimeoutError, run_process


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CapabilityProberTests(unittest.IsolatedAsyncioTestCase):
    async def test_missing_transcoder_and_snapshot_reuse(self) -> None:
        calls: list[str] = []

        async def fake_run_process(args, *, timeout, cwd=None, check=True):
            calls.append(args[0])
            self.assertEqual(timeout, 2.0)
            if args[0] == "ffmpeg":
                raise ProcessError("ffmpeg is not available")
            return ProcessResult(returncode=0, stdout="2024.08.06\n", stderr="")

        clock = _FakeClock()
        prober = CapabilityProber(
            ytdlp_binary="yt-dlp",
            ffmpeg_binary="ffmpeg",
            probe_timeout=2.0,
            cache_seconds=60,
            clock=clock,
        )
        with patch("audiograb.adapters.capabilities.run_process", new=fake_run_process):
            first = await prober.capabilities()
            clock.now = 30
            second = await prober.capabilities()
            clock.now = 61
            await prober.capabilities()

        self.assertTrue(first.has_downloader)
        self.assertFalse(first.has_transcoder)
        self.assertEqual(first.versions, {"ytDlp": "2024.08.06"})
        self.assertIs(first, second)
        self.assertEqual(calls.count("yt-dlp"), 2)

    async def test_full_report_includes_every_tool(self) -> None:
        async def fake_run_process(args, *, timeout, cwd=None, check=True):
            if args[0] == "youtube-dl":
                raise ProcessTimeoutError("youtube-dl timed out after 2.0s")
            return ProcessResult(returncode=0, stdout=f"{args[0]} version 1\nmore", stderr="")

        prober = CapabilityProber(ytdlp_binary="yt-dlp", ffmpeg_binary="ffmpeg", probe_timeout=2.0, cache_seconds=60)
        with patch("audiograb.adapters.capabilities.run_process", new=fake_run_process):
            checks, versions = await prober.full_report()

        self.assertEqual(checks, {"yt_dlp": True, "youtube_dl": False, "ffmpeg": True, "python": True})
        self.assertEqual(versions["ffmpeg"], "ffmpeg version 1")
        self.assertNotIn("youtubeDl", versions)

    def test_recommendations(self) -> None:
        hints = recommendations({"yt_dlp": False, "youtube_dl": False, "ffmpeg": False})
        self.assertEqual(len(hints), 2)
        self.assertIn("yt-dlp", hints[0])
        self.assertIn("FFmpeg", hints[1])
        self.assertEqual(
            recommendations({"yt_dlp": True, "youtube_dl": False, "ffmpeg": True}),
            ["All dependencies are installed correctly!"],
        )


class RunProcessTests(unittest.IsolatedAsyncioTestCase):
    async def test_collects_output(self) -> None:
        result = await run_process([sys.executable, "-c", "print('hello')"], timeout=10)
        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.stdout.strip(), "hello")

    async def test_nonzero_exit_raises_with_stderr_tail(self) -> None:
        script = "import sys; sys.stderr.write('ERROR: nope\\n'); sys.exit(3)"
        with self.assertRaises(ProcessError) as context:
            await run_process([sys.executable, "-c", script], timeout=10)
        self.assertIn("exited with 3", str(context.exception))
        self.assertIn("ERROR: nope", str(context.exception))

    async def test_nonzero_exit_allowed_without_check(self) -> None:
        result = await run_process([sys.executable, "-c", "import sys; sys.exit(2)"], timeout=10, check=False)
        self.assertEqual(result.returncode, 2)

    async def test_timeout_kills_the_child(self) -> None:
        with self.assertRaises(ProcessTimeoutError):
            await run_process([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.3)

    async def test_missing_binary(self) -> None:
        with self.assertRaises(ProcessError):
            await run_process(["definitely-not-a-real-binary-name"], timeout=1)


class CobaltServiceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.destination = Path(self._tmp.name) / "abc.mp3"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_downloads_audio_from_returned_url(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                self.assertIn(b'"isAudioOnly":true', request.content.replace(b" ", b""))
                return httpx.Response(200, json={"status": "success", "url": "https://cdn.example/a.mp3"})
            return httpx.Response(200, content=b"ID3cobalt")

        service = CobaltService(endpoint="https://cobalt.example/api/json", timeout=5, transport=httpx.MockTransport(handler))
        path = await service.download("https://www.youtube.com/watch?v=abc", self.destination)

        self.assertEqual(path.read_bytes(), b"ID3cobalt")

    async def test_non_success_payload_raises(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"status": "error", "text": "nope"}))
        service = CobaltService(endpoint="https://cobalt.example/api/json", timeout=5, transport=transport)

        with self.assertRaises(OnlineServiceError):
            await service.download("https://www.youtube.com/watch?v=abc", self.destination)

    async def test_http_failure_raises(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        service = CobaltService(endpoint="https://cobalt.example/api/json", timeout=5, transport=transport)

        with self.assertRaises(OnlineServiceError):
            await service.download("https://www.youtube.com/watch?v=abc", self.destination)


class PlaceholderTests(unittest.TestCase):
    def test_tone_is_a_valid_wav_with_expected_length(self) -> None:
        body = render_tone(frequency=440, seconds=1, sample_rate=8000)
        self.assertTrue(body.startswith(b"RIFF"))
        self.assertEqual(body[8:12], b"WAVE")
        self.assertEqual(len(body), 44 + 8000 * 2)

    def test_frequency_is_deterministic_per_identifier(self) -> None:
        self.assertEqual(frequency_for("abc"), frequency_for("abc"))
        self.assertIn(frequency_for("xyz"), (440, 523, 659, 784, 880, 1047))


if __name__ == "__main__":
    unittest.main()
