import numpy as np
import pytest

from exercise_pipeline import (
    ExerciseClassifier,
    ExerciseType,
    FrameContextBuilder,
    PipelineController,
    PipelineMetrics,
    PipelineStartError,
    PipelineState,
    StaticOrientationProvider,
    fps_from_latency,
)
from tests.fakes import FakeFrameSource, FakePoseEstimator, RecordingRenderer, make_pose


class SpyClassifier(ExerciseClassifier):
    def __init__(self):
        super().__init__()
        self.seen = []

    def classify(self, pose):
        self.seen.append(pose)
        return super().classify(pose)


def build(script, n_frames=None, clock=None, renderer=None, latency_ms=40, **kwargs):
    source = kwargs.pop('source', None) or FakeFrameSource(n_frames=n_frames)
    estimator = FakePoseEstimator(script, clock=clock, latency_ms=latency_ms)
    renderer = renderer or RecordingRenderer()
    controller = PipelineController(source, estimator, renderer, clock=clock, **kwargs)
    return controller, source, estimator, renderer


# ---------------------------------------------------------------- metrics

@pytest.mark.parametrize("latency, fps", [(40, 25), (1, 1000), (3, 333), (1001, 0)])
def test_fps_is_floor_of_1000_over_latency(latency, fps):
    assert fps_from_latency(latency) == fps


def test_zero_latency_fps_is_not_measurable():
    assert fps_from_latency(0) is None


def test_metrics_follow_latency(clock, squat_pose):
    controller, _, _, renderer = build([[squat_pose]], n_frames=2, clock=clock, latency_ms=[40, 0])
    controller.start(threaded=False)

    assert renderer.calls[0]['metrics'] == PipelineMetrics(40, 25)
    assert renderer.calls[1]['metrics'] == PipelineMetrics(0, None)
    assert controller.metrics == PipelineMetrics(0, None)


def test_estimator_receives_clock_timestamps(clock):
    controller, _, estimator, _ = build([[]], n_frames=2, clock=clock)
    controller.start(threaded=False)
    assert estimator.timestamps == [1000, 1040]


# ---------------------------------------------------------------- loop

def test_processes_every_frame_then_stops_at_end_of_stream(clock, squat_pose):
    controller, source, estimator, renderer = build([[squat_pose]], n_frames=3, clock=clock)
    controller.start(threaded=False)

    assert controller.state is PipelineState.CANCELLED
    assert estimator.calls == 3
    assert len(renderer.calls) == 3
    assert len(source.released) == 3
    assert controller.frames_processed == 3
    squat = renderer.calls[0]['classifications'][0]
    assert squat.exercise is ExerciseType.SQUAT and squat.detected


def test_no_pose_skips_classification(clock):
    spy = SpyClassifier()
    controller, _, _, renderer = build([[]], n_frames=1, clock=clock, classifier=spy)
    controller.start(threaded=False)

    assert spy.seen == []
    assert renderer.calls[0]['pose'] is None
    assert renderer.calls[0]['classifications'] == []
    assert renderer.calls[0]['normalized'] == []


def test_only_primary_pose_is_classified(clock, squat_pose, pushup_pose):
    spy = SpyClassifier()
    controller, _, _, renderer = build([[pushup_pose, squat_pose]], n_frames=1,
                                       clock=clock, classifier=spy)
    controller.start(threaded=False)

    assert spy.seen == [pushup_pose]
    assert renderer.calls[0]['pose'] is pushup_pose


@pytest.mark.parametrize("portrait, expected", [(False, (480, 120)), (True, (360, 160))])
def test_renderer_gets_gated_display_points(clock, portrait, expected):
    # 64x48 frame from a back camera: x is flipped to 48, then scaled
    context = FrameContextBuilder(StaticOrientationProvider(portrait=portrait), 480, 640,
                                  camera_facing_is_back=True)
    pose = make_pose(score=0.25, nose=(32, 24))
    pose = type(pose)(keypoints=pose.keypoints + make_pose(score=0.9, left_hip=(16, 12)).keypoints)
    controller, _, _, renderer = build([[pose]], n_frames=1, clock=clock, frame_context=context)
    controller.start(threaded=False)

    [point] = renderer.calls[0]['normalized']
    assert point.x == pytest.approx(expected[0])
    assert point.y == pytest.approx(expected[1])


def test_classification_ignores_display_geometry(clock, squat_pose):
    weird = FrameContextBuilder(StaticOrientationProvider(portrait=True), 10, 5000,
                                camera_facing_is_back=True, always_mirror=True)
    plain, _, _, plain_renderer = build([[squat_pose]], n_frames=1, clock=clock)
    skewed, _, _, skewed_renderer = build([[squat_pose]], n_frames=1, clock=clock,
                                          frame_context=weird)
    plain.start(threaded=False)
    skewed.start(threaded=False)

    assert plain_renderer.calls[0]['normalized'] != skewed_renderer.calls[0]['normalized']
    assert plain_renderer.calls[0]['classifications'] == skewed_renderer.calls[0]['classifications']


# ---------------------------------------------------------------- failures

def test_inference_failure_skips_frame_and_keeps_metrics(clock, squat_pose, propagate_logs, caplog):
    seen_metrics = []
    controller = None

    def third_call():
        seen_metrics.append(controller.metrics)
        return [squat_pose]

    controller, source, estimator, renderer = build(
        [[squat_pose], RuntimeError("GPU hiccup"), third_call],
        n_frames=3, clock=clock, latency_ms=[40, 10, 50],
    )
    controller.start(threaded=False)

    assert len(renderer.calls) == 2
    assert controller.frames_skipped == 1
    assert len(source.released) == 3
    assert seen_metrics == [PipelineMetrics(40, 25)]
    assert controller.metrics == PipelineMetrics(50, 20)
    assert "Pose estimation failed on frame 2" in caplog.text


def test_renderer_failure_does_not_stop_pipeline(clock, squat_pose):
    renderer = RecordingRenderer(fail=True)
    controller, source, _, _ = build([[squat_pose]], n_frames=3, clock=clock, renderer=renderer)
    controller.start(threaded=False)

    assert len(renderer.calls) == 3
    assert controller.frames_processed == 3


class FlakyOrientation(StaticOrientationProvider):
    """Raises on the first call only."""

    def __init__(self):
        super().__init__(portrait=False)
        self.calls = 0

    def is_portrait(self, frame):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("sensor glitch")
        return super().is_portrait(frame)


def test_display_context_failure_skips_only_that_frame(squat_pose):
    context = FrameContextBuilder(FlakyOrientation(), 480, 640)
    controller, source, _, renderer = build([[squat_pose]], n_frames=3, frame_context=context)
    controller.start()
    assert controller.join(timeout=5)

    assert controller.state is PipelineState.CANCELLED
    assert len(renderer.calls) == 2
    assert len(renderer.skipped) == 1
    assert controller.frames_skipped == 1
    assert len(source.released) == 3


def test_classifier_failure_skips_frame(clock, squat_pose):
    class BrokenOnce(ExerciseClassifier):
        calls = 0

        def classify(self, pose):
            self.calls += 1
            if self.calls == 1:
                raise ValueError("bad pose")
            return super().classify(pose)

    controller, _, _, renderer = build([[squat_pose]], n_frames=2, clock=clock,
                                       classifier=BrokenOnce())
    controller.start(threaded=False)

    assert len(renderer.calls) == 1
    assert controller.frames_skipped == 1
    assert controller.state is PipelineState.CANCELLED


def test_skipped_inference_frames_reach_renderer(clock):
    controller, _, _, renderer = build([RuntimeError("GPU hiccup")], n_frames=3, clock=clock)
    controller.start(threaded=False)

    assert renderer.calls == []
    assert len(renderer.skipped) == 3


def test_single_read_failure_is_retried(clock):
    source = FakeFrameSource(n_frames=3, fail_on_reads=[2])
    controller, _, estimator, renderer = build([[]], clock=clock, source=source)
    controller.start(threaded=False)

    assert estimator.calls == 2
    assert len(renderer.calls) == 2
    assert source.reads == 4


def test_read_failure_count_resets_on_success(clock):
    source = FakeFrameSource(n_frames=7, fail_on_reads=[2, 4, 6])
    controller, _, _, renderer = build([[]], clock=clock, source=source, max_read_failures=2)
    controller.start(threaded=False)
    assert len(renderer.calls) == 4


def test_persistent_read_failure_stops_pipeline(clock):
    source = FakeFrameSource(fail_from_read=2)
    controller, _, estimator, renderer = build([[]], clock=clock, source=source,
                                               max_read_failures=3)
    controller.start(threaded=False)

    assert controller.state is PipelineState.CANCELLED
    assert source.reads == 4
    assert estimator.calls == 1
    assert len(renderer.calls) == 1


def test_loop_exiting_by_exception_cancels():
    class BadRelease(FakeFrameSource):
        def release_frame(self, frame):
            raise RuntimeError("buffer pool gone")

    controller, _, _, _ = build([[]], source=BadRelease(n_frames=3))
    with pytest.raises(RuntimeError):
        controller.start(threaded=False)
    assert controller.state is PipelineState.CANCELLED
    assert controller.is_running is False


# ---------------------------------------------------------------- lifecycle

def test_start_fails_when_source_unavailable(clock):
    controller, _, estimator, _ = build([[]], clock=clock, source=FakeFrameSource(opened=False))
    with pytest.raises(PipelineStartError):
        controller.start(threaded=False)
    assert controller.state is PipelineState.IDLE
    assert estimator.calls == 0


def test_controller_is_single_use(clock):
    controller, _, _, _ = build([[]], n_frames=1, clock=clock)
    controller.start(threaded=False)
    with pytest.raises(PipelineStartError):
        controller.start(threaded=False)


def test_cancel_before_start_is_terminal(clock):
    controller, _, _, _ = build([[]], clock=clock)
    controller.cancel()
    assert controller.state is PipelineState.CANCELLED
    with pytest.raises(PipelineStartError):
        controller.start()


def test_cancel_from_renderer_stops_after_current_frame(clock, squat_pose):
    controller = None
    renderer = RecordingRenderer(hook=lambda: controller.cancel())
    controller, source, estimator, _ = build([[squat_pose]], clock=clock, renderer=renderer)
    controller.start(threaded=False)

    assert len(renderer.calls) == 1
    assert source.reads == 1
    assert controller.run_iteration() is False


def test_cancel_during_inference(gate, squat_pose):
    entered, release = gate

    def blocking_call():
        entered.set()
        release.wait(timeout=5)
        return [squat_pose]

    controller, source, estimator, renderer = build([[squat_pose], blocking_call])
    controller.start()

    assert entered.wait(timeout=5)
    controller.cancel()
    release.set()
    assert controller.join(timeout=5)

    assert controller.state is PipelineState.CANCELLED
    assert estimator.calls == 2
    assert source.reads == 2
    assert len(source.released) == 2
    assert len(renderer.calls) == 1


def test_join_without_thread_returns_immediately(clock):
    controller, _, _, _ = build([[]], n_frames=1, clock=clock)
    assert controller.join(timeout=0) is True


def test_released_frames_are_the_acquired_ones(clock):
    frames = []

    class Source(FakeFrameSource):
        def next_frame(self):
            frame = super().next_frame()
            if frame is not None:
                frames.append(frame)
            return frame

    controller, source, _, _ = build([[]], clock=clock, source=Source(n_frames=2))
    controller.start(threaded=False)
    assert all(a is b for a, b in zip(frames, source.released))
    assert isinstance(source.released[0], np.ndarray)
