import xml.etree.ElementTree as ET

from .errors import DomainCheckFailed

CONNECT_URI = 'qemu:///system'


def fetch_domain_xml(vm_name, uri=CONNECT_URI):
    """Reads the domain definition through a read-only libvirt connection."""
    try:
        import libvirt
    except ImportError as e:
        raise DomainCheckFailed("verify_domain needs libvirt-python (pip install 'virt-backup[libvirt]').") from e

    conn = None
    try:
        conn = libvirt.openReadOnly(uri)
        if conn is None:
            raise DomainCheckFailed(f"Could not connect to the hypervisor at {uri}")
        dom = conn.lookupByName(vm_name)
        return dom.XMLDesc(0)
    except libvirt.libvirtError as e:
        raise DomainCheckFailed(f"Domain '{vm_name}' not found on {uri}: {e}") from e
    finally:
        if conn:
            conn.close()


def disk_targets(xml_desc):
    """Target device names (vda, sda, ...) of every disk in a domain XML."""
    try:
        root = ET.fromstring(xml_desc)
    except ET.ParseError as e:
        raise DomainCheckFailed(f"Could not parse the domain XML: {e}") from e

    targets = []
    for device in root.findall('./devices/disk'):
        target = device.find('target')
        if target is not None and target.get('dev'):
            targets.append(target.get('dev'))
    return targets


def verify_domain(vm_name, exclude_disk, transcript, uri=CONNECT_URI, fetch_xml=fetch_domain_xml):
    transcript.info(f"Checking domain '{vm_name}' on {uri}...")
    targets = disk_targets(fetch_xml(vm_name, uri))
    transcript.info(f"  -> Disks: {', '.join(targets) if targets else 'none'}")

    if exclude_disk and exclude_disk not in targets:
        raise DomainCheckFailed(f"Exclude disk '{exclude_disk}' is not a disk of '{vm_name}'.")
    return targets
