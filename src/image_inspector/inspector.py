"""Image inspection: pull, provision, extract."""

import logging
import os
import tempfile
from typing import Iterable, Optional

from .auth.credentials import resolve_credentials
from .core.connectivity import check_connectivity
from .core.docker_client import DockerClient
from .core.types import DEFAULT_DOCKER_URI, PULL_LOG_INTERVAL_SEC, InspectorOptions
from .exceptions import (
    CredentialError,
    DestinationError,
    PullError,
    RuntimeAPIError,
    RuntimeConnectionError,
)
from .models import InspectionResult
from .provision import create_and_extract
from .pull.progress import ProgressCallback
from .pull.puller import pull_image
from .scanner import Scanner, run_scanner

logger = logging.getLogger(__name__)

# /var/tmp is used because it is usually not an in-memory tmpfs
DURABLE_TEMP_ROOT = "/var/tmp"
TEMP_DIR_PREFIX = "image-inspector-"
DESTINATION_MODE = 0o755


class DirectoryFactory:
    """Creates the directories an inspection writes into."""

    def mkdir(self, path: str, mode: int) -> None:
        os.mkdir(path, mode)

    def mkdtemp(self, prefix: str, dir: str) -> str:
        return tempfile.mkdtemp(prefix=prefix, dir=dir)

    def is_directory(self, path: str) -> bool:
        return os.path.isdir(path)


def create_output_dir(
    path: Optional[str],
    prefix: str = TEMP_DIR_PREFIX,
    factory: Optional[DirectoryFactory] = None,
    temp_root: str = DURABLE_TEMP_ROOT,
) -> str:
    """Make sure an output directory exists.

    Args:
        path: Directory to create, empty for a fresh temporary directory
        prefix: Name prefix of the temporary directory
        factory: Directory creation strategy
        temp_root: Parent of temporary directories

    Returns:
        Path of the directory

    Raises:
        DestinationError: If the directory cannot be created
    """
    factory = factory or DirectoryFactory()
    if path:
        try:
            factory.mkdir(path, DESTINATION_MODE)
        except FileExistsError:
            if not factory.is_directory(path):
                raise DestinationError(
                    f"Unable to create destination path: {path} exists and is not a directory"
                )
        except OSError as e:
            raise DestinationError(f"Unable to create destination path: {e}") from e
        return path

    try:
        return factory.mkdtemp(prefix=prefix, dir=temp_root)
    except OSError as e:
        raise DestinationError(f"Unable to create temporary path: {e}") from e


class ImageInspector:
    """Extracts an image's filesystem into a local directory."""

    def __init__(
        self,
        options: InspectorOptions,
        directory_factory: Optional[DirectoryFactory] = None,
        progress_callback: Optional[ProgressCallback] = None,
        scanners: Iterable[Scanner] = (),
        temp_root: str = DURABLE_TEMP_ROOT,
    ) -> None:
        self.options = options
        self.directory_factory = directory_factory or DirectoryFactory()
        self.progress_callback = progress_callback
        self.scanners = list(scanners)
        self.temp_root = temp_root

    async def _pull(self, client: DockerClient):
        options = self.options
        try:
            credentials = await resolve_credentials(
                options.docker_cfg, options.username, options.password_file
            )
            return await pull_image(
                client,
                options.image,
                credentials,
                report_interval=options.pull_report_interval,
                progress_callback=self.progress_callback,
            )
        except PullError:
            raise
        except (CredentialError, RuntimeAPIError, RuntimeConnectionError) as e:
            raise PullError(f"Unable to pull docker image {options.image}: {e}") from e

    async def inspect(self) -> InspectionResult:
        """Pull the image if needed and extract it.

        Returns:
            InspectionResult with destination and image metadata

        Raises:
            ConfigurationError: If the options are inconsistent
            PullError: If the daemon cannot be reached or the image cannot be pulled
            DestinationError: If the destination cannot be created
            ProvisionError: If the container cannot be created or inspected
            ExtractionError: If the filesystem cannot be extracted
        """
        self.options.validate()
        config = self.options.docker_config()
        try:
            await check_connectivity(config)
        except RuntimeConnectionError as e:
            raise PullError(f"Unable to pull docker image {self.options.image}: {e}") from e

        async with DockerClient(config) as client:
            pull = await self._pull(client)

            destination = create_output_dir(
                self.options.dst_path,
                factory=self.directory_factory,
                temp_root=self.temp_root,
            )
            image_metadata = await create_and_extract(
                client, self.options.image, destination
            )

        result = InspectionResult(
            image=self.options.image,
            destination=destination,
            image_metadata=image_metadata,
            pull=pull,
        )
        for scanner in self.scanners:
            result.scans.append(await run_scanner(scanner, destination, image_metadata))
        return result


async def inspect_image(
    image: str,
    destination: Optional[str] = None,
    *,
    docker_url: str = DEFAULT_DOCKER_URI,
    docker_cfg: Iterable[str] = (),
    username: str = "",
    password_file: str = "",
    report_interval: float = PULL_LOG_INTERVAL_SEC,
    progress_callback: Optional[ProgressCallback] = None,
    directory_factory: Optional[DirectoryFactory] = None,
) -> InspectionResult:
    """이미지의 파일시스템을 로컬 디렉토리로 추출합니다.

    이미지가 로컬에 없으면 주어진 인증 정보를 순서대로 시도하여 pull 한 뒤,
    실행되지 않는 임시 컨테이너를 통해 파일시스템을 추출합니다.

    Args:
        image: 이미지 참조 (예: "nginx:alpine", "registry.io/team/app@sha256:...")
        destination: 추출 경로 (생략 시 /var/tmp 아래 임시 디렉토리 생성)
        docker_url: Docker 데몬 URI (기본값: "unix:///var/run/docker.sock")
        docker_cfg: 레지스트리 인증 정보가 담긴 docker config 파일 목록
        username: 레지스트리 사용자명 (docker_cfg 대신 사용)
        password_file: username 의 비밀번호가 담긴 파일
        report_interval: pull 진행 상황 보고 간격 (초, 기본값: 10초)
        progress_callback: (다운로드 바이트, 완료 여부) 를 받는 콜백
        directory_factory: 디렉토리 생성 전략 (테스트용)

    Returns:
        InspectionResult: 추출 경로와 이미지 메타데이터

    Raises:
        PullError: 데몬 연결 실패 또는 모든 인증 정보로 pull 실패 시
        DestinationError: 추출 경로를 만들 수 없는 경우
        ProvisionError: 컨테이너 생성 또는 조회 실패 시
        ExtractionError: 파일시스템 추출 실패 시

    Examples:
        # 임시 디렉토리로 추출
        result = await inspect_image("alpine:3.20")
        print(f"추출 경로: {result.destination}")

        # 인증 정보와 함께 지정 경로로 추출
        result = await inspect_image(
            "registry.example.com/team/app:v1",
            "/srv/inspect/app",
            docker_cfg=["/root/.docker/config.json"],
        )
    """
    options = InspectorOptions(
        image=image,
        uri=docker_url,
        dst_path=destination or "",
        docker_cfg=list(docker_cfg),
        username=username,
        password_file=password_file,
        pull_report_interval=report_interval,
    )
    inspector = ImageInspector(
        options,
        directory_factory=directory_factory,
        progress_callback=progress_callback,
    )
    return await inspector.inspect()
