import logging
import os
import re
import shlex
import signal
import subprocess
import threading

from .config import DEFAULT_IMAGE

logger = logging.getLogger('virtbackup')

# --- CONSTANTS ---
BACKUP_MOUNT = "/backups"

# (host, container) bind mounts the tool needs to reach libvirt, qemu and the images
CONTAINER_MOUNTS = [
    ("/run", "/run"),
    ("/var/tmp", "/var/tmp"),
    ("/etc/libvirt/qemu/nvram", "/etc/libvirt/qemu/nvram"),
    ("/usr/share/OVMF", "/usr/share/OVMF"),
    ("/var/lib/libvirt/images", "/var/lib/libvirt/images:ro"),
]

NOT_FOUND_EXIT_CODE = 127
TIMEOUT_EXIT_CODE = 124
STOP_TIMEOUT = 60


def container_name(vm_name, period):
    """Name the container runs under, so it can be stopped from outside."""
    # docker/podman accept [a-zA-Z0-9][a-zA-Z0-9_.-]*
    safe_vm = re.sub(r"[^a-zA-Z0-9_.-]", "_", vm_name)
    return f"virt-backup-{safe_vm}-{period}"


def build_command(base_path, vm_name, period, exclude_disk=None,
                  runtime="docker", image=DEFAULT_IMAGE, compress=16, level="auto"):
    """Argument list for one virtnbdbackup run inside the container."""
    cmd = [runtime, "run", "--rm", "--name", container_name(vm_name, period)]
    for host, container in CONTAINER_MOUNTS:
        cmd.extend(["-v", f"{host}:{container}"])
    cmd.extend(["-v", f"{base_path}:{BACKUP_MOUNT}"])
    cmd.append(image)

    cmd.extend([
        "virtnbdbackup",
        f"--compress={compress}",
        "-d", vm_name,
        "-l", level,
        "-o", f"{BACKUP_MOUNT}/{vm_name}/{period}",
        "-S",
    ])

    if exclude_disk:
        cmd.extend(["-x", exclude_disk])
    return cmd


def build_stop_command(vm_name, period, runtime="docker"):
    return [runtime, "kill", container_name(vm_name, period)]


def stop_process(proc, stop_command=None, sig=signal.SIGKILL):
    """
    Kills the client's whole process group, then the container by name.

    The runtime client does not pass SIGKILL on to the container, hence the
    separate stop command.
    """
    if proc.poll() is None:
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            pass
    if not stop_command:
        return
    try:
        subprocess.run(stop_command, capture_output=True, text=True, timeout=STOP_TIMEOUT)
    except (OSError, subprocess.SubprocessError) as e:
        logger.error(f"Could not stop the container ({shlex.join(stop_command)}): {e}")


def run_backup(command, transcript, timeout=None, stop_command=None, popen=subprocess.Popen):
    """
    Runs the backup command and waits for it.

    stdout and stderr are merged and copied line by line into the transcript.
    Returns the exit status; a process killed by signal N reports 128 + N like
    a shell would, a missing runtime 127 and an expired timeout 124.
    """
    transcript.info("Running container command...")
    logger.debug(f"Command: {shlex.join(command)}")

    try:
        proc = popen(command,
                     stdout=subprocess.PIPE,
                     stderr=subprocess.STDOUT,
                     text=True,
                     encoding='utf-8',
                     errors='replace',
                     start_new_session=True)
    except OSError as e:
        transcript.error(f"Could not start '{command[0]}': {e}")
        return NOT_FOUND_EXIT_CODE

    expired = threading.Event()
    watchdog = None
    if timeout:
        def _expire():
            # a process that already exited on its own keeps its status
            if proc.poll() is None:
                expired.set()
                stop_process(proc, stop_command)

        watchdog = threading.Timer(timeout, _expire)
        watchdog.daemon = True
        watchdog.start()

    try:
        for line in proc.stdout:
            transcript.output(line.rstrip("\r\n"))
        returncode = proc.wait()
    except KeyboardInterrupt:
        logger.warning("Interrupted, stopping the container process...")
        stop_process(proc, stop_command, signal.SIGTERM)
        proc.wait()
        raise
    finally:
        if watchdog:
            watchdog.cancel()
        proc.stdout.close()

    if expired.is_set() and returncode != 0:
        transcript.error(f"Backup did not finish within {timeout}s and was killed.")
        return TIMEOUT_EXIT_CODE

    if returncode < 0:
        return 128 - returncode
    return returncode
