import psutil

from listings_finder import supervision


class FakeProcess:
    def __init__(self, pid, name, cmdline=(), kill_error=None):
        self.pid = pid
        self.info = {"pid": pid, "name": name, "cmdline": list(cmdline)}
        self.kill_error = kill_error
        self.killed = False

    def kill(self):
        if self.kill_error is not None:
            raise self.kill_error
        self.killed = True


def install(monkeypatch, processes):
    monkeypatch.setattr(supervision.psutil, "process_iter", lambda attrs=None: list(processes))
    monkeypatch.setattr(supervision.psutil, "wait_procs", lambda procs, timeout=None: (procs, []))


def test_counts_chromium_processes(monkeypatch):
    install(monkeypatch, [
        FakeProcess(1, "chromium"),
        FakeProcess(2, "chrome", ["/opt/chrome", "--headless=new"]),
        FakeProcess(3, "python", ["uvicorn"]),
    ])
    assert supervision.count_browser_processes() == 2


def test_kill_skips_vanished_processes(monkeypatch):
    alive = FakeProcess(1, "chromium")
    gone = FakeProcess(2, "chromium", kill_error=psutil.NoSuchProcess(2))
    install(monkeypatch, [alive, gone])

    assert supervision.kill_orphaned_browsers() == 1
    assert alive.killed


def test_own_browsers_can_be_spared(monkeypatch):
    ours = FakeProcess(10, "chromium")
    orphan = FakeProcess(20, "chromium")
    install(monkeypatch, [ours, orphan])
    monkeypatch.setattr(supervision, "_own_descendants", lambda: {10})

    assert supervision.kill_orphaned_browsers(spare_own_children=True) == 1
    assert orphan.killed and not ours.killed
