"""
Upload service: takes a raw image from bytes to a persisted photo record
Handles dedup, analysis, derivative generation, storage and persistence
"""
import mimetypes
import os
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Any, Optional, Tuple
from ..config import Config
from ..constants import ImageConstants, RecordConstants
from ..contracts import UploadState, UploadResult, CleanupResult, CleanupFailure, FolderImportReport
from ..exceptions import (
    IngestServiceError, ValidationError, EntityNotFoundError, UploadCancelledError
)
from ..logger import pipeline_logger as logger
from ..models import Photo, Album
from ..processors import (
    ContentHasher, GeometryAnalyzer, ImageGeometry, Derivative, DerivativeGenerator,
    DerivativeSet, MetadataExtractor, MetadataBlock
)
from ..repositories import PhotoRepository, DynamoPhotoRepository
from ..storage import StorageManager, StorageProvider, StoredObject
from ..utils import (
    generate_storage_filename, generate_photo_id, join_storage_path,
    normalize_id, check_cancelled, CancellationToken
)
from .dedup_service import DuplicateDetector


class _UploadRun:
    """Per-upload bookkeeping: current state and every object stored so far"""

    def __init__(self, original_filename: str):
        self.upload_id = uuid.uuid4().hex[:12]
        self.original_filename = original_filename
        self.state = UploadState.RECEIVED
        self.stored: List[Tuple[StorageProvider, str]] = []
        self.persisted = False

    def transition(self, new_state: UploadState, **kwargs):
        logger.log_state_transition(
            self.upload_id,
            self.state.value,
            new_state.value,
            original_filename=self.original_filename,
            **kwargs
        )
        self.state = new_state


class UploadService:
    """
    Orchestrates one upload through RECEIVED -> DEDUPED -> ANALYZING ->
    DERIVING -> STORING -> PERSISTING -> DONE, or SKIPPED / ERRORED.

    Every outcome is returned as an UploadResult; nothing is raised to the caller.
    """

    def __init__(self, config: Config, repository: PhotoRepository = None,
                 storage_manager: StorageManager = None, detector: DuplicateDetector = None,
                 geometry_analyzer: GeometryAnalyzer = None,
                 derivative_generator: DerivativeGenerator = None,
                 metadata_extractor: MetadataExtractor = None):
        self.config = config
        self.hasher = ContentHasher()
        self.repository = repository or DynamoPhotoRepository(config.system_username)
        self.storage_manager = storage_manager or StorageManager(config)
        self.detector = detector or DuplicateDetector(self.repository, self.hasher)
        self.geometry_analyzer = geometry_analyzer or GeometryAnalyzer()
        self.derivative_generator = derivative_generator or DerivativeGenerator(
            max_workers=config.derivative_concurrency,
            blur_size=config.blur_placeholder_size
        )
        self.metadata_extractor = metadata_extractor or MetadataExtractor()

    def upload(
        self,
        image_data: bytes,
        original_filename: str,
        mime_type: str,
        album_id: str = None,
        title: str = None,
        description: str = None,
        tags: List[str] = None,
        storage_provider: str = None,
        replace_if_exists: bool = False,
        uploaded_by: str = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> UploadResult:
        """
        Run the full upload pipeline for one image

        Args:
            image_data: Raw image bytes
            original_filename: Filename as uploaded
            mime_type: Declared MIME type of the original
            album_id: Album the photo belongs to
            title: Title; defaults to the original filename
            description: Description; defaults to empty
            tags: Tag list
            storage_provider: Provider id used when the album does not name one
            replace_if_exists: Replace the files of a duplicate instead of skipping
            uploaded_by: Uploader id; defaults to the system user
            cancel_token: Cooperative cancellation / deadline

        Returns:
            UploadResult describing success, skip or failure
        """
        run = _UploadRun(original_filename)
        album_id = normalize_id(album_id)

        logger.log_service_operation(
            "photo_upload",
            entity_type='photo',
            upload_id=run.upload_id,
            original_filename=original_filename,
            album_id=album_id,
            size=len(image_data) if image_data else 0,
            replace_if_exists=replace_if_exists
        )

        try:
            # RECEIVED -> DEDUPED
            self._validate(image_data, original_filename)
            content_hash = self.hasher.hash(image_data)
            duplicate = self.detector.check(image_data, original_filename, album_id, content_hash)
            run.transition(UploadState.DEDUPED, content_hash=content_hash, duplicate=duplicate.exists)

            existing: Optional[Photo] = None
            if duplicate.exists:
                existing = duplicate.existing_record
                if not replace_if_exists:
                    run.transition(UploadState.SKIPPED, reason=duplicate.reason)
                    return UploadResult(
                        success=False,
                        state=UploadState.SKIPPED,
                        skipped=True,
                        reason=f"Duplicate photo ({duplicate.reason})",
                        photo=existing.to_dict() if hasattr(existing, 'to_dict') else None
                    )

            # DEDUPED -> ANALYZING
            check_cancelled(cancel_token, 'analyze')
            run.transition(UploadState.ANALYZING)
            album, provider = self._resolve_target(album_id, storage_provider, existing)
            album_path = album.base_path if album else ''
            geometry = self.geometry_analyzer.analyze(image_data)

            # ANALYZING -> DERIVING
            check_cancelled(cancel_token, 'derive')
            run.transition(UploadState.DERIVING, **geometry.to_dict())
            derivatives, blur_data_url, metadata, compressed = self._derive(image_data, geometry)

            # DERIVING -> STORING
            check_cancelled(cancel_token, 'store')
            run.transition(UploadState.STORING, provider=provider.provider_id, derivatives=len(derivatives))
            cleanup = self._delete_previous_files(existing) if existing is not None else None

            filename = generate_storage_filename(original_filename)
            stored_data, stored_mime_type = image_data, mime_type
            if compressed is not None:
                stored_data, stored_mime_type = compressed.data, ImageConstants.OUTPUT_MIME_TYPE
                if mime_type != ImageConstants.OUTPUT_MIME_TYPE:
                    filename = os.path.splitext(filename)[0] + ImageConstants.OUTPUT_EXTENSION
            original, stored_derivatives = self._store(
                run, provider, stored_data, filename, stored_mime_type, album_path, derivatives, cancel_token
            )

            thumbnails = {name: stored.url for name, stored in stored_derivatives.items()}
            thumbnail_path = self._legacy_thumbnail(thumbnails)
            storage_record = {
                'provider': provider.provider_id,
                'file_id': original.file_id,
                'url': original.url,
                'path': original.path,
                'bucket': original.bucket,
                'folder_id': original.folder_id,
                'mime_type': original.mime_type,
                'thumbnail_path': thumbnail_path,
                'thumbnails': thumbnails,
                'thumbnail_paths': {name: stored.path for name, stored in stored_derivatives.items()},
                'blur_data_url': blur_data_url
            }

            # STORING -> PERSISTING
            check_cancelled(cancel_token, 'persist')
            run.transition(UploadState.PERSISTING, replace=existing is not None)
            file_fields = {
                'filename': filename,
                'original_filename': original_filename,
                'mime_type': mime_type,
                'size': len(image_data),
                'stored_size': len(stored_data),
                'compression_ratio': round(len(stored_data) / len(image_data), 4),
                'content_hash': content_hash,
                'geometry': geometry.to_dict(),
                'storage': storage_record,
                'metadata': metadata.to_dict() if metadata else None
            }

            if existing is not None:
                photo = self.repository.update_file_fields(existing.photo_id, file_fields)
            else:
                photo = self._insert(file_fields, album, title, description, tags, uploaded_by)
            run.persisted = True

            # PERSISTING -> DONE
            run.transition(UploadState.DONE, photo_id=photo.photo_id)
            logger.log_service_operation(
                "photo_upload_success",
                entity_type='photo',
                entity_id=photo.photo_id,
                upload_id=run.upload_id,
                thumbnails=len(thumbnails),
                replaced=existing is not None
            )

            return UploadResult(
                success=True,
                state=UploadState.DONE,
                photo=photo.to_dict(),
                thumbnails=thumbnails,
                thumbnail_path=thumbnail_path,
                blur_data_url=blur_data_url,
                metadata=metadata.to_dict() if metadata else None,
                cleanup=cleanup,
                replaced=existing is not None
            )

        except Exception as e:
            return self._fail(run, e)

    def upload_from_folder(self, folder_path: str, **options) -> FolderImportReport:
        """
        Upload every image file directly inside a directory, in name order

        A failing file is recorded and the import carries on.

        Args:
            folder_path: Local directory to import
            **options: Passed through to upload() for every file

        Returns:
            FolderImportReport with per-file outcomes
        """
        if not os.path.isdir(folder_path):
            raise ValidationError(f"Not a directory: {folder_path}", field='folder_path', value=folder_path)

        filenames = sorted(
            name for name in os.listdir(folder_path)
            if os.path.isfile(os.path.join(folder_path, name))
            and os.path.splitext(name)[1].lower() in ImageConstants.IMAGE_EXTENSIONS
        )
        report = FolderImportReport(total=len(filenames))

        logger.log_service_operation("folder_import", folder_path=folder_path, total=report.total)

        for name in filenames:
            try:
                with open(os.path.join(folder_path, name), 'rb') as f:
                    data = f.read()
            except OSError as e:
                logger.error("Failed to read file for import", error=e, filename=name)
                report.failed += 1
                report.failures.append({'filename': name, 'error': str(e)})
                continue

            mime_type = mimetypes.guess_type(name)[0] or 'application/octet-stream'
            result = self.upload(data, name, mime_type, **options)

            if result.success:
                report.successful += 1
                report.successes.append({'filename': name, 'photo_id': result.photo['photo_id']})
            elif result.skipped:
                report.skipped += 1
                report.skipped_items.append({'filename': name, 'reason': result.reason})
            else:
                report.failed += 1
                report.failures.append({'filename': name, 'error': result.error})

        logger.log_service_operation(
            "folder_import_complete",
            folder_path=folder_path,
            total=report.total,
            successful=report.successful,
            skipped=report.skipped,
            failed=report.failed
        )
        return report

    def _validate(self, image_data: bytes, original_filename: str):
        if not image_data:
            raise ValidationError("Image data is empty", field='image_data')
        if len(image_data) > self.config.max_image_size:
            raise ValidationError(
                f"Image too large: {len(image_data)} bytes (max: {self.config.max_image_size})",
                field='image_data'
            )
        if not original_filename or not original_filename.strip():
            raise ValidationError("Original filename is required", field='original_filename')

    def _load_album(self, album_id: Optional[str]) -> Optional[Album]:
        if not album_id:
            return None
        album = self.repository.get_album_by_id(album_id)
        if album is None:
            raise EntityNotFoundError('album', album_id)
        return album

    def _resolve_target(self, album_id: Optional[str], storage_provider: Optional[str],
                        existing: Optional[Photo]) -> Tuple[Optional[Album], StorageProvider]:
        """
        Album and provider the files go to

        A replace stays in the album and provider of the record it replaces,
        whatever album the caller named.
        """
        if existing is None:
            album = self._load_album(album_id)
            provider_id = album.storage_provider if album else None
        else:
            existing_album_id = normalize_id(existing.album_id)
            album = self.repository.get_album_by_id(existing_album_id) if existing_album_id else None
            provider_id = (album.storage_provider if album else None) or (existing.storage or {}).get('provider')
            if existing_album_id != album_id:
                logger.info(
                    "Replace keeps the album of the existing photo",
                    photo_id=existing.photo_id,
                    album_id=existing.album_id,
                    requested_album_id=album_id
                )

        provider = self.storage_manager.get_provider(
            self.storage_manager.resolve_provider_id(provider_id, storage_provider)
        )
        return album, provider

    def _derive(self, image_data: bytes, geometry: ImageGeometry
                ) -> Tuple[DerivativeSet, str, Optional[MetadataBlock], Optional[Derivative]]:
        """Derivatives, blur placeholder, metadata and compressed original over the same bytes, concurrently"""
        with ThreadPoolExecutor(max_workers=4) as executor:
            derivatives_future = executor.submit(self.derivative_generator.generate_all, image_data, geometry)
            blur_future = executor.submit(self.derivative_generator.generate_blur_placeholder, image_data, geometry)
            metadata_future = executor.submit(self.metadata_extractor.extract, image_data)
            compressed_future = None
            if self.config.compress_originals:
                compressed_future = executor.submit(self.derivative_generator.compress_original, image_data, geometry)

            derivatives = derivatives_future.result()
            blur_data_url = blur_future.result()
            metadata = metadata_future.result()
            compressed = compressed_future.result() if compressed_future else None

        if len(derivatives) < len(self.derivative_generator.sizes):
            missing = [s.name for s in self.derivative_generator.sizes if s.name not in derivatives]
            logger.warning("Some derivatives could not be generated", missing=missing)

        return derivatives, blur_data_url, metadata, compressed

    def _ensure_folder(self, provider: StorageProvider, path: str):
        """Hierarchical providers: make sure a folder exists, log instead of failing"""
        if not provider.is_hierarchical or not path:
            return
        try:
            if not provider.folder_exists(path):
                logger.info("Storage folder missing, creating", provider=provider.provider_id, path=path)
                provider.create_folder(path)
        except Exception as e:
            logger.warning(
                "Could not verify storage folder",
                provider=provider.provider_id,
                path=path,
                error_message=str(e)
            )

    def _store(self, run: _UploadRun, provider: StorageProvider, image_data: bytes, filename: str,
               mime_type: str, album_path: str, derivatives: DerivativeSet,
               cancel_token: Optional[CancellationToken]) -> Tuple[StoredObject, Dict[str, StoredObject]]:
        """
        Upload the original, then every derivative concurrently

        The original failing is fatal; a derivative failing only drops that size.
        """
        self._ensure_folder(provider, album_path)
        metadata = {'upload_id': run.upload_id, 'original_filename': run.original_filename}

        original = provider.upload_file(
            image_data, filename, mime_type, album_path,
            metadata={**metadata, 'variant': 'original'},
            cancel_token=cancel_token
        )
        run.stored.append((provider, original.path))

        specs = [spec for spec in self.derivative_generator.sizes if spec.name in derivatives]
        for spec in specs:
            self._ensure_folder(provider, join_storage_path(album_path, spec.folder))

        stored: Dict[str, StoredObject] = {}
        cancelled: Optional[UploadCancelledError] = None

        with ThreadPoolExecutor(max_workers=self.config.storage_concurrency) as executor:
            futures = {
                spec.name: executor.submit(
                    provider.upload_file,
                    derivatives[spec.name].data,
                    f"{spec.name}-{filename}",
                    ImageConstants.OUTPUT_MIME_TYPE,
                    join_storage_path(album_path, spec.folder),
                    {**metadata, 'variant': spec.name},
                    cancel_token
                )
                for spec in specs
            }
            for name, future in futures.items():
                try:
                    stored[name] = future.result()
                    run.stored.append((provider, stored[name].path))
                except UploadCancelledError as e:
                    cancelled = e
                except Exception as e:
                    logger.warning(
                        f"Derivative upload failed for {name}",
                        size=name,
                        provider=provider.provider_id,
                        error_type=type(e).__name__,
                        error_message=str(e)
                    )

        if cancelled is not None:
            raise cancelled
        return original, stored

    @staticmethod
    def _legacy_thumbnail(thumbnails: Dict[str, str]) -> Optional[str]:
        for name in ImageConstants.LEGACY_THUMBNAIL_PREFERENCE:
            if thumbnails.get(name):
                return thumbnails[name]
        return next(iter(thumbnails.values()), None)

    def _insert(self, file_fields: Dict[str, Any], album: Optional[Album], title: Optional[str],
                description: Optional[str], tags: Optional[List[str]], uploaded_by: Optional[str]) -> Photo:
        record = dict(file_fields)
        record.update({
            'photo_id': generate_photo_id(),
            'title': {RecordConstants.DEFAULT_LANGUAGE: title or file_fields['original_filename']},
            'description': {RecordConstants.DEFAULT_LANGUAGE: description or ''},
            'album_id': album.album_id if album else None,
            'tags': list(tags or []),
            'is_published': True,
            'is_leading': False,
            'uploaded_by': self._resolve_uploader(uploaded_by)
        })
        photo = self.repository.insert(record)

        if album is not None:
            try:
                self.repository.increment_album_photo_count(album.album_id)
            except Exception as e:
                logger.warning(
                    "Failed to update album photo count",
                    album_id=album.album_id,
                    photo_id=photo.photo_id,
                    error_message=str(e)
                )
        return photo

    def _resolve_uploader(self, uploaded_by: Optional[str]) -> str:
        uploaded_by = normalize_id(uploaded_by)
        if uploaded_by:
            return uploaded_by
        try:
            system_user_id = self.repository.resolve_system_user_id()
        except Exception as e:
            logger.warning("System user lookup failed", error_message=str(e))
            system_user_id = None
        return system_user_id or RecordConstants.ZERO_USER_ID

    def _delete_previous_files(self, existing: Photo) -> CleanupResult:
        """Best-effort delete of a replaced photo's original and derivatives"""
        storage = existing.storage or {}
        paths = existing.stored_paths()

        try:
            provider = self.storage_manager.get_provider(storage.get('provider'))
        except Exception as e:
            logger.warning("Cannot reach storage of replaced photo", photo_id=existing.photo_id, error_message=str(e))
            return CleanupResult(
                attempted=len(paths),
                failures=[CleanupFailure(path=path, error=str(e)) for path in paths]
            )

        cleanup = provider.delete_files(paths)
        log = logger.info if cleanup.complete else logger.warning
        log(
            "Previous files removed for replace",
            photo_id=existing.photo_id,
            attempted=cleanup.attempted,
            succeeded=cleanup.succeeded,
            failed=len(cleanup.failures)
        )
        return cleanup

    def _rollback_storage(self, run: _UploadRun) -> CleanupResult:
        """Delete everything this run stored"""
        cleanup = CleanupResult()
        by_provider: Dict[str, Tuple[StorageProvider, List[str]]] = {}
        for provider, path in run.stored:
            by_provider.setdefault(provider.provider_id, (provider, []))[1].append(path)

        for provider, paths in by_provider.values():
            cleanup = cleanup.merge(provider.delete_files(paths))

        if cleanup.failures:
            logger.warning(
                "Could not remove all stored objects after failed upload",
                upload_id=run.upload_id,
                orphaned=[failure.path for failure in cleanup.failures]
            )
        run.stored.clear()
        return cleanup

    def _fail(self, run: _UploadRun, error: Exception) -> UploadResult:
        cleanup = None
        if run.stored and not run.persisted:
            cleanup = self._rollback_storage(run)

        if isinstance(error, IngestServiceError):
            message = error.message
            logger.warning(
                "Photo upload failed",
                upload_id=run.upload_id,
                failed_in=run.state.value,
                error_type=type(error).__name__,
                error_message=message,
                error_code=error.error_code
            )
        else:
            message = str(error) or type(error).__name__
            logger.error("Photo upload failed", error=error, upload_id=run.upload_id, failed_in=run.state.value)

        run.transition(UploadState.ERRORED, error=message)
        return UploadResult(success=False, state=UploadState.ERRORED, error=message, cleanup=cleanup)
