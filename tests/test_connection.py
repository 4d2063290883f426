"""Tests for connection string derivation."""

import pytest

from oci_bastion_ssh.bastion import SessionMode
from oci_bastion_ssh.errors import MalformedResponseError
from oci_bastion_ssh.ssh import derive_descriptor, extract_destination, substitute_placeholders

SESSION_ID = "ocid1.bastionsession.oc1.iad.amaaaaaac3adhhqa7lkmgqt2jeftojrd6xmhp3ggpcxehnzkbrhkxvhgwm4a"
RELAY_HOST = "host.bastion.us-ashburn-1.oci.oraclecloud.com"

MANAGED_TEMPLATE = (
    'ssh -i <privateKey> -o ProxyCommand="ssh -i <privateKey> -W %h:%p -p 22 '
    f'{SESSION_ID}@{RELAY_HOST}" -p 22 opc@10.0.1.5'
)
TUNNEL_TEMPLATE = f"ssh -i <privateKey> -N -L <localPort>:10.0.1.5:8080 -p 22 {SESSION_ID}@{RELAY_HOST}"


class TestExtractDestination:
    """Tests for pulling session@relay out of a template."""

    def test_managed_template_with_proxy_command(self):
        assert extract_destination(MANAGED_TEMPLATE) == (SESSION_ID, RELAY_HOST)

    def test_surrounding_text_is_ignored(self):
        template = f"Connect with:\n  {TUNNEL_TEMPLATE}\n(valid for 3 hours)"
        assert extract_destination(template) == (SESSION_ID, RELAY_HOST)

    def test_at_sign_inside_identifier(self):
        template = f"ssh -p 22 ocid1.bastionsession.oc1.odd@part@{RELAY_HOST}"
        assert extract_destination(template) == ("ocid1.bastionsession.oc1.odd@part", RELAY_HOST)

    @pytest.mark.parametrize(
        "relay_host",
        [
            "host.bastion.us-langley-1.oci.oraclegovcloud.com",
            "host.bastion.uk-gov-london-1.oci.oraclegovcloud.uk",
            "host.bastion.us-gov-ashburn-1.oci.oraclecloud8.com",
        ],
    )
    def test_government_and_sovereign_realms(self, relay_host):
        template = f"ssh -N -L <localPort>:10.0.1.5:22 -p 22 {SESSION_ID}@{relay_host}"
        assert extract_destination(template) == (SESSION_ID, relay_host)

    def test_unknown_domain_is_rejected(self):
        with pytest.raises(MalformedResponseError):
            extract_destination(f"ssh -p 22 {SESSION_ID}@host.bastion.example.com")

    def test_missing_markers_raise(self):
        with pytest.raises(MalformedResponseError):
            extract_destination("ssh -p 22 opc@10.0.1.5")

    def test_empty_template_raises(self):
        with pytest.raises(MalformedResponseError):
            extract_destination("")


class TestSubstitutePlaceholders:
    """Tests for tunnel command placeholder handling."""

    def test_key_removed_and_port_bound(self):
        command = substitute_placeholders(TUNNEL_TEMPLATE, 8080)
        assert command == (
            f"ssh -N -L localhost:8080:10.0.1.5:8080 -p 22 {SESSION_ID}@{RELAY_HOST}"
        )

    def test_other_tokens_untouched(self):
        original = TUNNEL_TEMPLATE.split()
        result = substitute_placeholders(TUNNEL_TEMPLATE, 5432).split()
        expected = [t for t in original if t not in ("-i", "<privateKey>")]
        expected = [t.replace("<localPort>", "localhost:5432") for t in expected]
        assert result == expected

    def test_identity_file_fills_key_placeholder(self):
        command = substitute_placeholders(TUNNEL_TEMPLATE, 8080, identity_file="/home/me/.ssh/bastion key")
        assert command == (
            "ssh -i '/home/me/.ssh/bastion key' -N -L localhost:8080:10.0.1.5:8080 "
            f"-p 22 {SESSION_ID}@{RELAY_HOST}"
        )

    def test_missing_port_placeholder_raises(self):
        with pytest.raises(MalformedResponseError):
            substitute_placeholders(f"ssh -N -p 22 {SESSION_ID}@{RELAY_HOST}", 8080)


class TestDeriveDescriptor:
    """Tests for descriptor derivation from session data."""

    def test_interactive_mode_from_session_data(self):
        data = {"id": SESSION_ID, "ssh-metadata": {"command": MANAGED_TEMPLATE}}
        descriptor = derive_descriptor(data, SessionMode.MANAGED_SSH)

        assert descriptor.session_id == SESSION_ID
        assert descriptor.relay_host == RELAY_HOST
        assert descriptor.destination == f"{SESSION_ID}@{RELAY_HOST}"
        assert descriptor.command is None
        assert descriptor.local_binding is None

    def test_tunnel_mode(self):
        descriptor = derive_descriptor(TUNNEL_TEMPLATE, SessionMode.PORT_FORWARDING, local_port=8080)

        assert descriptor.local_binding == "localhost:8080"
        assert descriptor.argv() == [
            "ssh", "-N", "-L", "localhost:8080:10.0.1.5:8080", "-p", "22", f"{SESSION_ID}@{RELAY_HOST}",
        ]

    def test_tunnel_mode_requires_port(self):
        with pytest.raises(ValueError):
            derive_descriptor(TUNNEL_TEMPLATE, SessionMode.PORT_FORWARDING)

    def test_missing_ssh_metadata_raises(self):
        with pytest.raises(MalformedResponseError):
            derive_descriptor({"id": SESSION_ID}, SessionMode.MANAGED_SSH)

    def test_interactive_descriptor_has_no_argv(self):
        descriptor = derive_descriptor(MANAGED_TEMPLATE, SessionMode.MANAGED_SSH)
        with pytest.raises(ValueError):
            descriptor.argv()

    def test_tunnel_argv_carries_identity_file(self):
        descriptor = derive_descriptor(
            TUNNEL_TEMPLATE, SessionMode.PORT_FORWARDING, local_port=8080, identity_file="/keys/bastion"
        )

        assert descriptor.identity_file == "/keys/bastion"
        assert descriptor.argv()[:3] == ["ssh", "-i", "/keys/bastion"]
        assert descriptor.argv()[-1] == f"{SESSION_ID}@{RELAY_HOST}"
