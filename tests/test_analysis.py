"""
Analysis Orchestrator Tests
===========================

Per-frame analysis, retry, degraded fallback and auto-selection.
"""

import asyncio


def run_analysis(store, engine, frames, sleep):
    """Schedule every frame, wait for all, return the orchestrator."""
    from frameperfect.pipeline.analysis import AnalysisOrchestrator

    orchestrator = AnalysisOrchestrator(store, engine, sleep=sleep)

    async def scenario():
        for frame in frames:
            orchestrator.schedule(frame)
        await orchestrator.drain()

    asyncio.run(scenario())
    return orchestrator


def pending_store(jpeg_b64, count=1):
    from frameperfect.models.frame import Frame
    from frameperfect.store.frame_store import FrameStore

    frames = [Frame.pending(timestamp=float(i * 3), image_b64=jpeg_b64) for i in range(count)]
    return FrameStore(frames), frames


class TestAnalysisOrchestrator:
    """Tests for AnalysisOrchestrator."""

    def test_excellent_is_auto_selected(self, jpeg_b64, scripted_engine, verdict, sleep_recorder):
        from frameperfect.models.frame import FrameQuality

        store, [frame] = pending_store(jpeg_b64)
        engine = scripted_engine(verdict(quality="Excellent"))
        orchestrator = run_analysis(store, engine, [frame], sleep_recorder)

        result = store.get(frame.id)
        assert result.analysis.quality == FrameQuality.EXCELLENT
        assert result.is_selected is True
        assert result.is_analyzing is False
        assert orchestrator.success_count == 1

    def test_good_is_not_selected(self, jpeg_b64, scripted_engine, verdict, sleep_recorder):
        store, [frame] = pending_store(jpeg_b64)
        run_analysis(store, scripted_engine(verdict(quality="Good")), [frame], sleep_recorder)

        result = store.get(frame.id)
        assert result.analysis.tags == ["Beach", "Sunset"]
        assert result.is_selected is False

    def test_prior_selection_kept_for_good_fair_and_fallback(
        self, jpeg_b64, scripted_engine, verdict, sleep_recorder
    ):
        """Verify non-Excellent verdicts never deselect a keeper."""
        from frameperfect.models.frame import Analysis, FrameQuality

        store, frames = pending_store(jpeg_b64, count=3)
        for frame in frames:
            store.update_frame(frame.id, {"is_selected": True})
        engine = scripted_engine(verdict(quality="Good"), verdict(quality="Fair"), "not json")
        run_analysis(store, engine, frames, sleep_recorder)

        good, fair, degraded = store.get_all()
        assert good.analysis.quality == FrameQuality.GOOD
        assert fair.analysis.quality == FrameQuality.FAIR
        assert degraded.analysis == Analysis.degraded()
        assert [f.is_selected for f in (good, fair, degraded)] == [True, True, True]

    def test_missing_quality_gives_fallback(self, jpeg_b64, scripted_engine, verdict, sleep_recorder):
        """Verify a schema violation yields the exact fallback after one call."""
        from frameperfect.models.frame import Analysis

        payload = verdict(quality="Excellent")
        del payload["quality"]
        store, [frame] = pending_store(jpeg_b64)
        engine = scripted_engine(payload)
        orchestrator = run_analysis(store, engine, [frame], sleep_recorder)

        result = store.get(frame.id)
        assert result.analysis == Analysis.degraded()
        assert result.is_selected is False
        assert result.is_analyzing is False
        assert len(engine.calls) == 1
        assert sleep_recorder.calls == []
        assert orchestrator.fallback_count == 1

    def test_transient_failures_are_retried(self, jpeg_b64, scripted_engine, verdict, sleep_recorder):
        from frameperfect.errors import TransientCapabilityError, TransientReason
        from frameperfect.models.frame import FrameQuality

        store, [frame] = pending_store(jpeg_b64)
        engine = scripted_engine(
            TransientCapabilityError(TransientReason.RATE_LIMITED),
            TransientCapabilityError(TransientReason.OVERLOADED),
            verdict(quality="Excellent"),
        )
        run_analysis(store, engine, [frame], sleep_recorder)

        assert len(engine.calls) == 3
        assert sleep_recorder.calls == [2.0, 4.0]
        assert store.get(frame.id).analysis.quality == FrameQuality.EXCELLENT

    def test_retry_exhaustion_gives_fallback(self, jpeg_b64, scripted_engine, sleep_recorder):
        from frameperfect.errors import TransientCapabilityError, TransientReason
        from frameperfect.models.frame import Analysis

        store, [frame] = pending_store(jpeg_b64)
        engine = scripted_engine(TransientCapabilityError(TransientReason.RATE_LIMITED))
        run_analysis(store, engine, [frame], sleep_recorder)

        assert len(engine.calls) == 4
        assert sleep_recorder.calls == [2.0, 4.0, 8.0]
        assert store.get(frame.id).analysis == Analysis.degraded()

    def test_unexpected_error_gives_fallback(self, jpeg_b64, scripted_engine, sleep_recorder):
        from frameperfect.models.frame import Analysis

        store, [frame] = pending_store(jpeg_b64)
        run_analysis(store, scripted_engine(RuntimeError("boom")), [frame], sleep_recorder)

        result = store.get(frame.id)
        assert result.analysis == Analysis.degraded()
        assert result.is_analyzing is False

    def test_result_for_removed_frame_is_dropped(self, jpeg_b64, scripted_engine, verdict, sleep_recorder):
        from frameperfect.pipeline.analysis import AnalysisOrchestrator

        store, [frame] = pending_store(jpeg_b64)
        orchestrator = AnalysisOrchestrator(store, scripted_engine(verdict()), sleep=sleep_recorder)

        async def scenario():
            orchestrator.schedule(frame)
            store.clear()
            await orchestrator.drain()

        asyncio.run(scenario())
        assert store.get_all() == []
        assert orchestrator.dropped_count == 1
        assert orchestrator.success_count == 0

    def test_many_frames_resolve_independently(self, jpeg_b64, scripted_engine, verdict, sleep_recorder):
        from frameperfect.models.frame import Analysis

        store, frames = pending_store(jpeg_b64, count=5)
        engine = scripted_engine(verdict(), "not json", verdict(quality="Excellent"))
        run_analysis(store, engine, frames, sleep_recorder)

        results = store.get_all()
        assert all(f.analysis is not None for f in results)
        assert all(not f.is_analyzing for f in results)
        assert sum(1 for f in results if f.analysis == Analysis.degraded()) == 1
        assert [f.id for f in results] == [f.id for f in frames]


class TestMockAnalysisEngine:
    """Tests for the deterministic offline engine."""

    def test_sharp_image_is_excellent(self, sharp_b64):
        from frameperfect.capabilities.engine import MockAnalysisEngine
        from frameperfect.models.analysis import parse_verdict
        from frameperfect.models.frame import FrameQuality

        raw = asyncio.run(MockAnalysisEngine().analyze(sharp_b64, "grade"))
        analysis = parse_verdict(raw)
        assert analysis.quality == FrameQuality.EXCELLENT
        assert 1 <= analysis.composition_score <= 10

    def test_flat_image_is_fair(self, flat_b64):
        from frameperfect.capabilities.engine import MockAnalysisEngine
        from frameperfect.models.analysis import parse_verdict
        from frameperfect.models.frame import FrameQuality

        raw = asyncio.run(MockAnalysisEngine().analyze(flat_b64, "grade"))
        analysis = parse_verdict(raw)
        assert analysis.quality == FrameQuality.FAIR
        assert analysis.composition_score == 1.0
        assert analysis.tags == ["Balanced"]

    def test_deterministic(self, jpeg_b64):
        from frameperfect.capabilities.engine import MockAnalysisEngine

        engine = MockAnalysisEngine()
        first = asyncio.run(engine.analyze(jpeg_b64, "grade"))
        second = asyncio.run(engine.analyze(jpeg_b64, "grade"))
        assert first == second
        assert engine.call_count == 2

    def test_grading_runs_in_worker_thread(self, jpeg_b64, monkeypatch):
        import threading

        from frameperfect.capabilities.engine import MockAnalysisEngine

        engine = MockAnalysisEngine()
        grade = engine._grade
        threads = []

        def recording_grade(image_b64):
            threads.append(threading.get_ident())
            return grade(image_b64)

        monkeypatch.setattr(engine, "_grade", recording_grade)
        asyncio.run(engine.analyze(jpeg_b64, "grade"))

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()

    def test_undecodable_image_violates_contract(self):
        import pytest
        from frameperfect.capabilities.engine import MockAnalysisEngine
        from frameperfect.errors import MalformedResponseError
        from frameperfect.models.analysis import parse_verdict

        raw = asyncio.run(MockAnalysisEngine().analyze("bm90IGFuIGltYWdl", "grade"))
        with pytest.raises(MalformedResponseError):
            parse_verdict(raw)
