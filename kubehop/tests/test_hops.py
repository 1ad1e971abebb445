import pytest

from kubehop.credentials import MASK, Secret
from kubehop.errors import RequestValidationError
from kubehop.models.hops import HopChain, HopEndpoint, normalize_port

from .conftest import make_hops


def test_port_accepts_numeric_string():
    chain = HopChain([{"host": "10.0.0.5", "port": "2222", "username": "ubuntu", "password": "pw"}])
    assert chain.target.port == 2222
    assert chain.to_wire()[0]["port"] == 2222


@pytest.mark.parametrize("port", ["abc", 0, 70000, True, "-1"])
def test_invalid_port_is_rejected(port):
    with pytest.raises(RequestValidationError) as exc:
        HopChain([{"host": "10.0.0.5", "port": port, "username": "ubuntu", "password": "pw"}])
    assert "hop #1" in str(exc.value)


def test_normalize_port_defaults():
    assert normalize_port(22) == 22
    assert HopEndpoint(host="h").port == 22


def test_order_is_preserved_and_target_is_last():
    chain = make_hops(host="10.0.0.42")
    assert [hop.host for hop in chain] == ["bastion.example.com", "10.0.0.42"]
    assert chain.target.host == "10.0.0.42"


def test_empty_chain_fails_require():
    with pytest.raises(RequestValidationError):
        HopChain([]).require("lb_hops")


def test_mapping_is_not_a_chain():
    with pytest.raises(RequestValidationError):
        HopChain.coerce({"host": "h", "username": "u"})


def test_missing_username_is_rejected():
    with pytest.raises(RequestValidationError) as exc:
        HopChain([{"host": "h", "password": "pw"}, {"host": "h2"}])
    assert exc.value.field == "hops"


def test_passwords_never_show_in_repr():
    chain = make_hops(password="hunter2")
    assert "hunter2" not in repr(chain)
    assert "hunter2" not in repr(list(chain))
    assert chain.to_wire()[1]["password"] == "hunter2"


def test_endpoints_drop_credentials():
    endpoints = make_hops().endpoints()
    assert all("password" not in e.model_dump() for e in endpoints)
    assert endpoints[1].username == "ubuntu"


def test_wipe_zeroes_every_hop():
    chain = make_hops()
    chain.wipe()
    assert all(not hop.password for hop in chain)
    assert chain.to_wire()[0]["password"] == ""


def test_secret_masking_and_context_manager():
    with Secret("s3cret") as secret:
        assert str(secret) == MASK
        assert "s3cret" not in repr(secret)
        assert secret.reveal() == "s3cret"
        assert secret == Secret("s3cret")
    assert len(secret) == 0
