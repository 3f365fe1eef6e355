from __future__ import annotations

from dashboard.heartbeat import Heartbeat


class Peer:
    def __init__(self, name: str) -> None:
        self.name = name
        self.is_alive = False
        self.probes = 0
        self.terminated = False

    def probe(self) -> None:
        self.probes += 1

    def terminate(self) -> None:
        self.terminated = True


def test_track_marks_peer_alive(scheduler):
    heartbeat = Heartbeat(scheduler, 1000)
    peer = Peer("a")

    heartbeat.track(peer)

    assert peer.is_alive is True
    assert heartbeat.peers == [peer]


def test_tick_probes_live_peers_and_terminates_silent_ones(scheduler):
    heartbeat = Heartbeat(scheduler, 1000)
    responsive, silent = Peer("responsive"), Peer("silent")
    heartbeat.track(responsive)
    heartbeat.track(silent)
    heartbeat.start()

    scheduler.advance(1000)
    assert (responsive.probes, silent.probes) == (1, 1)
    assert responsive.is_alive is False

    responsive.is_alive = True
    scheduler.advance(1000)

    assert responsive.probes == 2
    assert silent.terminated is True
    assert heartbeat.peers == [responsive]


def test_stop_cancels_ticks(scheduler):
    heartbeat = Heartbeat(scheduler, 1000)
    peer = Peer("a")
    heartbeat.track(peer)
    heartbeat.start()
    heartbeat.start()

    heartbeat.stop()
    scheduler.advance(5000)

    assert heartbeat.running is False
    assert peer.probes == 0
    assert scheduler.pending == []
