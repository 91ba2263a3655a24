def get_image_name_and_tag(image: str) -> tuple[str, str]:
    """Split a container image reference into name and tag.

    A digest reference (``name@sha256:...``) returns the digest as the tag.
    A colon followed by a path segment belongs to a registry port, not a
    tag. References without a tag default to ``latest``.

    Examples:
        >>> get_image_name_and_tag("quay.io/eclipse/che-operator:7.30.0")
        ('quay.io/eclipse/che-operator', '7.30.0')
        >>> get_image_name_and_tag("localhost:5000/che-operator")
        ('localhost:5000/che-operator', 'latest')
    """
    if "@" in image:
        name, _, digest = image.partition("@")
        return name, digest

    name, colon, tag = image.rpartition(":")
    if not colon or "/" in tag:
        return image, "latest"
    return name, tag
