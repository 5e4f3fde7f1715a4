import logging
import threading
from pathlib import Path

import pytest

from mdblog.errors import PostHeadFormatError, WatcherError
from mdblog.watcher import (
    ChangeEvent,
    ChannelClosed,
    EventChannel,
    EventKind,
    IgnorePatterns,
    RebuildWatcher,
    WatchState,
    WatchStatus,
    process_event,
    to_change_event,
)


class DummyEvent:
    def __init__(self, path, event_type="modified", is_directory=False, dest_path=""):
        self.src_path = path
        self.event_type = event_type
        self.is_directory = is_directory
        self.dest_path = dest_path


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeBlog:
    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    def load(self):
        self.calls.append("load")
        if self.fail_on == "load":
            raise PostHeadFormatError(Path("posts/bad.md"))

    def build(self):
        self.calls.append("build")
        if self.fail_on == "build":
            raise OSError("disk full")


class FakeObserver:
    def __init__(self):
        self.scheduled = []
        self.started = False
        self.stopped = False
        self.joined = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self):
        self.joined = True


def event(path, kind=EventKind.MODIFIED):
    return ChangeEvent(kind=kind, path=Path(path))


def make_watcher(tmp_path, blog=None, interval=2, clock=None, **kwargs):
    root = tmp_path / "blog"
    return RebuildWatcher(
        blog or FakeBlog(),
        root,
        IgnorePatterns.default(root, root / "_build"),
        interval=interval,
        delay=0,
        clock=clock or FakeClock(),
        **kwargs,
    )


def test_ignore_patterns_build_dir_and_dotfiles(tmp_path):
    root = tmp_path / "blog"
    ignore = IgnorePatterns.default(root, root / "_build")
    assert ignore.matches(root / "_build" / "index.html")
    assert ignore.matches(root / "_build" / "blog" / "tags" / "x.html")
    assert ignore.matches(root / "_build")
    assert ignore.matches(root / ".git" / "index")
    assert ignore.matches(root / "posts" / ".hello.md.swp")
    assert ignore.matches(root / "posts" / ".drafts" / "a.md")
    assert not ignore.matches(root / "posts" / "new.md")
    assert not ignore.matches(root / "_buildings" / "x.md")
    assert not ignore.matches(root / "media" / "logo.png")


def test_ignore_patterns_with_relative_paths(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    ignore = IgnorePatterns.default(Path("."), Path("_build/"))
    assert ignore.matches(Path("_build/index.html"))
    assert not ignore.matches(Path("posts/new.md"))


def test_ignore_patterns_do_not_apply_to_dotted_ancestors(tmp_path):
    root = tmp_path / ".config" / "blog"
    ignore = IgnorePatterns.default(root, root / "_build")
    assert not ignore.matches(root / "posts" / "new.md")


def test_ignore_patterns_escape_glob_characters(tmp_path):
    root = tmp_path / "blog[1]"
    ignore = IgnorePatterns.default(root, root / "_build")
    assert ignore.matches(root / "_build" / "index.html")
    assert not ignore.matches(root / "posts" / "a.md")


def test_process_event_discards_ignored_paths(tmp_path):
    root = tmp_path / "blog"
    ignore = IgnorePatterns.default(root, root / "_build")
    state = WatchState()
    new_state, rebuild = process_event(
        event(root / "_build" / "index.html"), state, ignore, 2, now=10.0
    )
    assert rebuild is False
    assert new_state == state

    new_state, rebuild = process_event(
        event(root / "posts" / "new.md"), state, ignore, 2, now=10.0
    )
    assert rebuild is True
    assert new_state == WatchState(WatchStatus.REBUILDING, last_run=10.0)


def test_process_event_throttles_within_interval(tmp_path):
    root = tmp_path / "blog"
    ignore = IgnorePatterns.default(root, root / "_build")
    state = WatchState(last_run=10.0)
    path = root / "posts" / "a.md"
    assert process_event(event(path), state, ignore, 2, now=11.9) == (state, False)
    assert process_event(event(path), state, ignore, 2, now=12.0)[1] is True


def test_process_event_when_stopped(tmp_path):
    state = WatchState(WatchStatus.STOPPED)
    ignore = IgnorePatterns([])
    assert process_event(event(tmp_path / "a.md"), state, ignore, 0, now=1.0) == (
        state,
        False,
    )


def test_two_events_within_interval_trigger_one_rebuild(tmp_path):
    """The second event is dropped, not queued for a later rebuild."""
    clock = FakeClock()
    blog = FakeBlog()
    watcher = make_watcher(tmp_path, blog=blog, clock=clock)
    path = tmp_path / "blog" / "posts" / "a.md"

    assert watcher.handle_event(event(path)) is True
    clock.now += 1
    assert watcher.handle_event(event(path)) is False
    assert blog.calls == ["load", "build"]

    clock.now += 1
    assert watcher.handle_event(event(path)) is True
    assert blog.calls == ["load", "build", "load", "build"]


def test_handle_event_ignores_build_output(tmp_path):
    blog = FakeBlog()
    watcher = make_watcher(tmp_path, blog=blog)
    assert watcher.handle_event(event(tmp_path / "blog" / "_build" / "index.html")) is False
    assert blog.calls == []
    assert watcher.state == WatchState()


@pytest.mark.parametrize("fail_on", ["load", "build"])
def test_rebuild_failure_is_logged_and_watcher_stays_idle(tmp_path, caplog, fail_on):
    blog = FakeBlog(fail_on=fail_on)
    rebuilt = []
    watcher = make_watcher(tmp_path, blog=blog, on_rebuilt=lambda: rebuilt.append(True))
    with caplog.at_level(logging.ERROR):
        assert watcher.handle_event(event(tmp_path / "blog" / "posts" / "a.md")) is True
    assert watcher.state.status is WatchStatus.IDLE
    assert rebuilt == []
    assert any(r.levelno == logging.ERROR for r in caplog.records)


def test_unexpected_rebuild_error_does_not_escape(tmp_path, caplog):
    class BrokenBlog(FakeBlog):
        def build(self):
            raise ValueError("bug")

    watcher = make_watcher(tmp_path, blog=BrokenBlog())
    with caplog.at_level(logging.ERROR):
        watcher.handle_event(event(tmp_path / "blog" / "posts" / "a.md"))
    assert "unexpected error" in caplog.text
    assert watcher.state.status is WatchStatus.IDLE


def test_successful_rebuild_calls_hook(tmp_path):
    rebuilt = []
    watcher = make_watcher(tmp_path, on_rebuilt=lambda: rebuilt.append(True))
    watcher.handle_event(event(tmp_path / "blog" / "posts" / "a.md"))
    assert rebuilt == [True]
    assert watcher.state.status is WatchStatus.IDLE
    assert watcher.state.last_run == 100.0


def test_to_change_event_maps_watchdog_events():
    change = to_change_event(DummyEvent("/b/posts/a.md", "created"))
    assert change == ChangeEvent(EventKind.CREATED, Path("/b/posts/a.md"))

    moved = to_change_event(DummyEvent("/b/a.md", "moved", dest_path="/b/c.md"))
    assert moved.kind is EventKind.MOVED
    assert moved.path == Path("/b/a.md")
    assert moved.dest_path == Path("/b/c.md")

    assert to_change_event(DummyEvent("/b/posts", "modified", is_directory=True)) is None
    assert to_change_event(DummyEvent("/b/posts/a.md", "opened")) is None
    assert to_change_event(DummyEvent(b"/b/posts/a.md", "deleted")).path == Path(
        "/b/posts/a.md"
    )


def test_event_channel_waits_for_quiet_period():
    clock = FakeClock(0.0)
    channel = EventChannel(delay=2.0, clock=clock)
    channel.put(event("/b/a.md", EventKind.CREATED))
    clock.now = 1.0
    channel.put(event("/b/a.md"))
    clock.now = 2.5
    channel.put(event("/b/c.md"))

    clock.now = 3.0
    # a.md settles at 3.0; c.md is still within its window
    assert channel.get(timeout=0) == event("/b/a.md")
    assert channel.get(timeout=0) is None
    clock.now = 4.5
    assert channel.get(timeout=0) == event("/b/c.md")


def test_event_channel_close():
    channel = EventChannel(delay=0)
    channel.put(event("/b/a.md"))
    channel.close()
    channel.put(event("/b/ignored.md"))
    assert channel.get(timeout=0) == event("/b/a.md")
    with pytest.raises(ChannelClosed):
        channel.get(timeout=0)


def test_event_channel_receives_observer_events():
    channel = EventChannel(delay=0)
    channel.dispatch(DummyEvent("/b/posts/a.md", "modified"))
    assert channel.get(timeout=0) == event("/b/posts/a.md")


def test_start_schedules_recursive_watch(tmp_path):
    observer = FakeObserver()
    watcher = make_watcher(tmp_path, observer_factory=lambda: observer)
    watcher.start()
    assert observer.started
    handler, path, recursive = observer.scheduled[0]
    assert handler is watcher.channel
    assert path == str(tmp_path / "blog")
    assert recursive is True


def test_start_failure_raises_watcher_error(tmp_path):
    def broken_factory():
        raise OSError("inotify watch limit reached")

    watcher = make_watcher(tmp_path, observer_factory=broken_factory)
    with pytest.raises(WatcherError):
        watcher.start()
    assert watcher.state.status is WatchStatus.STOPPED


def test_run_processes_events_until_stopped(tmp_path):
    observer = FakeObserver()
    blog = FakeBlog()
    watcher = make_watcher(tmp_path, blog=blog, observer_factory=lambda: observer)
    watcher.on_rebuilt = watcher.stop
    watcher.channel.put(event(tmp_path / "blog" / "_build" / "index.html"))
    watcher.channel.put(event(tmp_path / "blog" / "posts" / "a.md"))

    thread = threading.Thread(target=watcher.run, kwargs={"poll_interval": 0.01})
    thread.start()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert blog.calls == ["load", "build"]
    assert observer.stopped and observer.joined
    assert watcher.state.status is WatchStatus.STOPPED


def test_run_survives_closed_channel(tmp_path, caplog):
    observer = FakeObserver()
    watcher = make_watcher(tmp_path, observer_factory=lambda: observer)
    watcher.channel.close()
    timer = threading.Timer(0.1, watcher.stop)
    timer.start()
    with caplog.at_level(logging.ERROR):
        watcher.run(poll_interval=0.01)
    timer.join()
    assert "watch error" in caplog.text
    assert watcher.state.status is WatchStatus.STOPPED


def test_rename_from_hidden_temp_file_triggers_rebuild(tmp_path):
    """Editors that save by renaming a dotfile onto the post still rebuild."""
    blog = FakeBlog()
    watcher = make_watcher(tmp_path, blog=blog)
    posts = tmp_path / "blog" / "posts"
    temp = str(posts / ".hello.md.tmp")
    watcher.channel.dispatch(DummyEvent(temp, "created"))
    watcher.channel.dispatch(DummyEvent(temp, "moved", dest_path=str(posts / "hello.md")))

    triggered = []
    while (change := watcher.channel.get(timeout=0)) is not None:
        triggered.append(watcher.handle_event(change))
    assert triggered == [False, True]
    assert blog.calls == ["load", "build"]


def test_process_event_moves_match_either_path(tmp_path):
    root = tmp_path / "blog"
    ignore = IgnorePatterns.default(root, root / "_build")
    state = WatchState()

    def moved(src, dest):
        return ChangeEvent(EventKind.MOVED, root / src, dest_path=root / dest)

    assert process_event(moved("posts/.a.tmp", "posts/a.md"), state, ignore, 2, now=1.0)[1]
    assert process_event(moved("posts/a.md", "posts/.a.md~"), state, ignore, 2, now=1.0)[1]
    assert process_event(
        moved("posts/.a.tmp", "_build/a.html"), state, ignore, 2, now=1.0
    ) == (state, False)


def test_event_channel_keys_moves_on_destination():
    channel = EventChannel(delay=0)
    channel.put(ChangeEvent(EventKind.MOVED, Path("/b/.a.tmp"), dest_path=Path("/b/a.md")))
    channel.put(event("/b/a.md"))
    assert channel.get(timeout=0) == event("/b/a.md")
    assert channel.get(timeout=0) is None
