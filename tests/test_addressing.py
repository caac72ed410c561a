# tests/test_addressing.py
import pytest

from noteledger.core.config import ProgramConfig
from noteledger.core.errors import ConstraintSeeds, InvalidSeeds
from noteledger.crypto.derivation import create_program_address, find_program_address, is_on_curve
from noteledger.crypto.keys import IdentityKeyPair
from noteledger.program.state import find_note_address, verify_note_address


@pytest.fixture
def config():
    return ProgramConfig.default()


@pytest.fixture
def owner():
    return IdentityKeyPair.from_seed(b"\x01" * 32)


def test_derivation_is_deterministic(config, owner):
    first = find_note_address(owner.public_key, config)
    second = find_note_address(owner.public_key, config)
    assert first == second
    address, bump = first
    assert len(address) == 32
    assert 0 <= bump <= 255


def test_derived_address_is_off_curve(config, owner):
    address, _ = find_note_address(owner.public_key, config)
    assert not is_on_curve(address)
    # a real signing key is on the curve, which is why it can never collide with a note address
    assert is_on_curve(owner.public_key)


def test_canonical_bump_is_highest_viable(config, owner):
    address, bump = find_note_address(owner.public_key, config)
    assert create_program_address([config.seed, owner.public_key, bytes([bump])], config.program_id) == address
    for higher in range(bump + 1, 256):
        with pytest.raises(InvalidSeeds):
            create_program_address([config.seed, owner.public_key, bytes([higher])], config.program_id)


def test_distinct_owners_get_distinct_addresses(config):
    a = IdentityKeyPair.generate()
    b = IdentityKeyPair.generate()
    assert find_note_address(a.public_key, config)[0] != find_note_address(b.public_key, config)[0]


def test_program_id_separates_address_space(owner):
    one = ProgramConfig(program_id=bytes([1] * 32))
    two = ProgramConfig(program_id=bytes([2] * 32))
    assert find_note_address(owner.public_key, one)[0] != find_note_address(owner.public_key, two)[0]


def test_seed_limits():
    with pytest.raises(InvalidSeeds):
        find_program_address([b"x" * 33], bytes(32))
    with pytest.raises(InvalidSeeds):
        find_program_address([b"x"] * 16, bytes(32))
    with pytest.raises(InvalidSeeds):
        create_program_address([b"x"] * 17, bytes(32))


def test_verify_note_address_accepts_canonical(config, owner):
    address, bump = find_note_address(owner.public_key, config)
    verify_note_address(address, owner.public_key, bump, config)


def test_verify_note_address_rejects_other_owner(config, owner):
    address, bump = find_note_address(owner.public_key, config)
    stranger = IdentityKeyPair.generate()
    with pytest.raises(ConstraintSeeds):
        verify_note_address(address, stranger.public_key, bump, config)


def test_verify_note_address_rejects_wrong_bump(config, owner):
    address, bump = find_note_address(owner.public_key, config)
    # any other bump either lands on the curve or derives a different address
    with pytest.raises(ConstraintSeeds):
        verify_note_address(address, owner.public_key, (bump - 1) % 256, config)
