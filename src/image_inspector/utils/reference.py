"""Image reference parsing."""

DEFAULT_TAG = "latest"


def parse_image_reference(image: str) -> tuple[str, str]:
    """Split an image reference into repository and tag (or digest).

    The result is what ``POST /images/create`` expects in its ``fromImage``
    and ``tag`` parameters. A reference without a tag gets ``latest`` so that
    a bare repository never pulls every tag.

    Args:
        image: Image reference
            - 예: "nginx", "nginx:alpine", "localhost:5000/myapp:v1"
            - digest: "nginx@sha256:abc..."

    Returns:
        (repository, tag) tuple

    Examples:
        parse_image_reference("localhost:5000/myapp")
        # 결과: ("localhost:5000/myapp", "latest")

        parse_image_reference("nginx@sha256:0123")
        # 결과: ("nginx", "sha256:0123")
    """
    if "@" in image:
        repository, digest = image.split("@", 1)
        return repository, digest

    if ":" in image:
        # Split only on the last ':' to handle registry URLs like localhost:5000/repo:tag
        repository, tag = image.rsplit(":", 1)
        if tag and "/" not in tag:
            return repository, tag
        if not tag:
            return repository, DEFAULT_TAG

    return image, DEFAULT_TAG
