from types import SimpleNamespace

import pytest

pulsectl = pytest.importorskip("pulsectl")

from deejey.sinks import SinkCallFailed  # noqa: E402
from deejey.sinks.pulse_sink import PulseVolumeSink  # noqa: E402


class _FakePulse:
    instances: list["_FakePulse"] = []

    def __init__(self, client_name: str) -> None:
        self.client_name = client_name
        self.volumes: list[tuple[str, float]] = []
        self.closed = False
        self.fail = False
        _FakePulse.instances.append(self)

    def server_info(self):
        return SimpleNamespace(default_sink_name="alsa_output.speakers")

    def sink_list(self):
        return [
            SimpleNamespace(name="alsa_output.hdmi", label="hdmi"),
            SimpleNamespace(name="alsa_output.speakers", label="speakers"),
        ]

    def sink_input_list(self):
        if self.fail:
            raise pulsectl.PulseError("connection dropped")
        return [
            SimpleNamespace(label="discord", proplist={"application.process.binary": "Discord"}),
            SimpleNamespace(label="firefox", proplist={"application.name": "Firefox"}),
        ]

    def volume_set_all_chans(self, obj, level: float) -> None:
        self.volumes.append((obj.label, level))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_pulse(monkeypatch):
    _FakePulse.instances = []
    monkeypatch.setattr("deejey.sinks.pulse_sink.pulsectl.Pulse", _FakePulse)
    return _FakePulse


@pytest.mark.asyncio
async def test_master_sets_default_sink(fake_pulse) -> None:
    sink = PulseVolumeSink()

    assert await sink.set_volume("master", 0.4) is True
    await sink.aclose()

    client = fake_pulse.instances[0]
    assert client.client_name == "deejey"
    assert client.volumes == [("speakers", 0.4)]
    assert client.closed


@pytest.mark.asyncio
async def test_application_matching_is_case_insensitive(fake_pulse) -> None:
    sink = PulseVolumeSink()

    assert await sink.set_volume("discord", 0.7) is True
    assert await sink.set_volume("firefox", 0.2) is True
    assert await sink.set_volume("spotify", 0.9) is False
    await sink.aclose()

    assert fake_pulse.instances[0].volumes == [("discord", 0.7), ("firefox", 0.2)]


@pytest.mark.asyncio
async def test_pulse_error_reconnects_on_next_call(fake_pulse) -> None:
    sink = PulseVolumeSink()
    await sink.set_volume("master", 0.5)
    fake_pulse.instances[0].fail = True

    with pytest.raises(SinkCallFailed):
        await sink.set_volume("discord", 0.5)

    assert fake_pulse.instances[0].closed
    assert await sink.set_volume("discord", 0.5) is True
    assert len(fake_pulse.instances) == 2
    await sink.aclose()
