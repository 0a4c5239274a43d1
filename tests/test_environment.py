from gltf_export.environment import EnvironmentCapability, EnvironmentUpdateQueue, apply_environment_extras
from gltf_export.schema import SkyboxData, SkyboxMode


class RecordingEnvironment:
    def __init__(self):
        self.calls = []

    def apply_skybox(self, skybox):
        self.calls.append(("skybox", skybox))

    def regenerate_reflections(self):
        self.calls.append(("reflections", None))


def skybox_material(mode=0, **fields):
    data = SkyboxData(skybox_mode=SkyboxMode(mode), **fields).to_dict()
    return {"name": "Skybox", "extras": {"skyboxData": data}}


def test_capability_protocol():
    assert isinstance(RecordingEnvironment(), EnvironmentCapability)
    assert not isinstance(object(), EnvironmentCapability)


def test_update_applied_on_poll():
    env = RecordingEnvironment()
    queue = EnvironmentUpdateQueue(env)

    assert queue.request_environment_update(SkyboxData())
    assert env.calls == []
    assert queue.poll_and_apply()

    assert [name for name, _ in env.calls] == ["skybox", "reflections"]
    assert queue.pending is None
    assert not queue.poll_and_apply()


def test_latest_request_wins():
    env = RecordingEnvironment()
    queue = EnvironmentUpdateQueue(env)
    first, second = SkyboxData(exposure=1.0), SkyboxData(exposure=2.0)

    queue.request_environment_update(first)
    queue.request_environment_update(second)
    queue.poll_and_apply()

    assert env.calls[0] == ("skybox", second)
    assert len(env.calls) == 2


def test_without_capability_requests_are_ignored():
    queue = EnvironmentUpdateQueue()

    assert not queue.request_environment_update(SkyboxData())
    assert queue.pending is None
    assert not queue.poll_and_apply()


def test_apply_environment_extras():
    env = RecordingEnvironment()
    queue = EnvironmentUpdateQueue(env)
    gltf = {"materials": [
        {"name": "Plain"},
        skybox_material(mode=0, front_tex=3, exposure=1.5),
    ]}

    assert apply_environment_extras(gltf, queue) == 1
    assert queue.pending.skybox_mode == SkyboxMode.SIX_SIDED
    assert queue.pending.front_tex == 3
    assert queue.pending.sky_tint == (0.5, 0.5, 0.5, 1.0)
    assert queue.pending.face_textures() == [3, -1, -1, -1, -1, -1]


def test_invalid_skybox_extras_skipped(collected):
    queue = EnvironmentUpdateQueue(RecordingEnvironment())
    bad_mode = {"extras": {"skyboxData": {"isSkybox": True, "skyboxMode": 7}}}
    bad_field = {"extras": {"skyboxData": {"isSkybox": True, "exposure": 1.0, "skyboxMode": "sky"}}}

    assert apply_environment_extras({"materials": [bad_mode, bad_field]}, queue) == 0
    assert queue.pending is None
    assert len(collected.warnings) == 2


def test_extras_without_flag_ignored():
    queue = EnvironmentUpdateQueue(RecordingEnvironment())
    gltf = {"materials": [{"extras": {"skyboxData": {"skyboxMode": 1}}}]}

    assert apply_environment_extras(gltf, queue) == 0
