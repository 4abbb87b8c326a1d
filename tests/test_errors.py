from kubepipe.podwatcher.errors import (
    FailedContainerError,
    OtherContainerError,
    PodTerminatedError,
    PodWatcherError,
    StartTimeoutContainerError,
    UnknownContainerError,
)


def test_unknown_container_message():
    err = UnknownContainerError("A")
    assert str(err) == "unknown container: A"
    assert err.container == "A"


def test_pod_terminated_message():
    assert str(PodTerminatedError()) == "pod is terminated"


def test_failed_container_fields_in_message():
    err = FailedContainerError("A", 2, "Error", "img")
    text = str(err)
    assert text.startswith("kubernetes has failed: container failed to start: ")
    assert "id=A" in text and "exitcode=2" in text and "image=img" in text


def test_start_timeout_fields():
    err = StartTimeoutContainerError(container="c1", image="alpine")
    assert "id=c1 image=alpine" in str(err)
    assert isinstance(err, PodWatcherError)


def test_other_container_wraps_message():
    inner = FailedContainerError("B", 1, "r", "i")
    err = OtherContainerError(inner)
    assert str(err) == "aborting due to error: " + str(inner)
    assert err.err is inner