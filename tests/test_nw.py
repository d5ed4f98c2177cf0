import pytest

from tritontube.nw import NetworkVideoContentService
from tritontube.rpc import RemoteError


class FakeNode:
    def __init__(self, addr):
        self.addr = addr
        self.files = {}
        self.closed = False

    def store_file(self, key, data):
        self.files[key] = bytes(data)
        return True

    def get_file(self, key):
        try:
            return self.files[key]
        except KeyError:
            raise RemoteError(f"failed to read file: {key}") from None

    def delete_file(self, key):
        self.files.pop(key, None)
        return True

    def close(self):
        self.closed = True


class BrokenReadNode(FakeNode):
    def get_file(self, key):
        raise RemoteError("disk failure")


class Cluster:
    def __init__(self, broken=()):
        self.nodes = {}
        self.broken = set(broken)

    def __call__(self, addr):
        node = (BrokenReadNode if addr in self.broken else FakeNode)(addr)
        self.nodes[addr] = node
        return node

    def total_files(self):
        return sum(len(node.files) for node in self.nodes.values())


def _service(cluster, *addrs):
    service = NetworkVideoContentService(cluster)
    for addr in addrs:
        service.add_node(addr)
    return service


def _files():
    return {(f"vid{n}", f"chunk-{n:05d}.m4s"): f"data-{n}".encode() for n in range(40)}


def test_write_then_read_round_trip():
    service = _service(Cluster(), "n1:8090", "n2:8090", "n3:8090")
    for (video_id, name), data in _files().items():
        service.write(video_id, name, data)
    for (video_id, name), data in _files().items():
        assert service.read(video_id, name) == data


def test_each_file_lives_on_exactly_one_node_under_joined_key():
    cluster = Cluster()
    service = _service(cluster, "n1:8090", "n2:8090")
    service.write("vid", "manifest.mpd", b"<MPD/>")
    holders = [n for n in cluster.nodes.values() if "vid/manifest.mpd" in n.files]
    assert len(holders) == 1
    assert holders[0].files["vid/manifest.mpd"] == b"<MPD/>"


def test_write_without_nodes_raises():
    with pytest.raises(LookupError):
        NetworkVideoContentService(Cluster()).write("vid", "a.m4s", b"x")


def test_read_without_nodes_raises():
    with pytest.raises(LookupError):
        NetworkVideoContentService(Cluster()).read("vid", "a.m4s")


def test_adding_existing_node_raises():
    service = _service(Cluster(), "n1:8090")
    with pytest.raises(ValueError):
        service.add_node("n1:8090")


def test_removing_unknown_node_raises():
    service = _service(Cluster(), "n1:8090")
    with pytest.raises(ValueError):
        service.remove_node("n9:8090")


def test_add_node_migrates_files_to_the_new_node():
    cluster = Cluster()
    service = _service(cluster, "n1:8090", "n2:8090")
    for (video_id, name), data in _files().items():
        service.write(video_id, name, data)
    migrated = service.add_node("n3:8090")
    assert migrated > 0
    assert migrated == len(cluster.nodes["n3:8090"].files)
    assert cluster.total_files() == len(_files())
    for (video_id, name), data in _files().items():
        assert service.read(video_id, name) == data


def test_remove_node_moves_its_files_to_the_rest():
    cluster = Cluster()
    service = _service(cluster, "n1:8090", "n2:8090", "n3:8090")
    for (video_id, name), data in _files().items():
        service.write(video_id, name, data)
    held = len(cluster.nodes["n2:8090"].files)
    migrated = service.remove_node("n2:8090")
    assert migrated == held
    assert cluster.nodes["n2:8090"].files == {}
    assert cluster.nodes["n2:8090"].closed
    assert service.list_nodes() == ["n1:8090", "n3:8090"]
    for (video_id, name), data in _files().items():
        assert service.read(video_id, name) == data


def test_removing_last_node_migrates_nothing():
    service = _service(Cluster(), "n1:8090")
    service.write("vid", "a.m4s", b"x")
    assert service.remove_node("n1:8090") == 0
    with pytest.raises(LookupError):
        service.read("vid", "a.m4s")


def test_failed_migration_is_not_counted():
    cluster = Cluster(broken={"n1:8090"})
    service = _service(cluster, "n1:8090")
    for (video_id, name), data in _files().items():
        service.write(video_id, name, data)
    assert service.add_node("n2:8090") == 0
    assert cluster.nodes["n2:8090"].files == {}
    assert len(cluster.nodes["n1:8090"].files) == len(_files())


def test_list_nodes_keeps_join_order():
    service = _service(Cluster(), "n3:8090", "n1:8090", "n2:8090")
    assert service.list_nodes() == ["n3:8090", "n1:8090", "n2:8090"]


def test_close_closes_every_client():
    cluster = Cluster()
    service = _service(cluster, "n1:8090", "n2:8090")
    service.close()
    assert all(node.closed for node in cluster.nodes.values())
    assert service.list_nodes() == ["n1:8090", "n2:8090"]