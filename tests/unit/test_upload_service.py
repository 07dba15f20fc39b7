"""
Unit tests for UploadService against moto DynamoDB and local disk storage
"""
import pytest
from unittest.mock import patch
from PIL import Image

from gallery_ingest.constants import RecordConstants
from gallery_ingest.contracts import UploadState
from gallery_ingest.exceptions import PersistenceError, ValidationError
from gallery_ingest.models import Album, User
from gallery_ingest.processors import DerivativeGenerator, hash_content
from gallery_ingest.services import UploadService
from gallery_ingest.utils import CancellationToken

ALL_SIZES = {'micro', 'small', 'medium', 'large', 'hero'}


def stored_files(root):
    """Relative paths of every file under the storage root"""
    if not root.exists():
        return []
    return sorted(str(p.relative_to(root)) for p in root.rglob('*') if p.is_file())


class TestUploadService:
    """Test cases for the upload pipeline"""

    @pytest.fixture(autouse=True)
    def setup_service(self, mock_aws_services, test_config, storage_root):
        self.root = storage_root
        self.service = UploadService(test_config)
        Album(album_id='album-1', name='Summer', alias='summer').save()

    def test_new_upload_into_album(self, sample_jpeg):
        """A new image is stored, derived and recorded; the album count goes up"""
        result = self.service.upload(
            sample_jpeg, 'beach.jpg', 'image/jpeg',
            album_id='album-1', title='Beach', description='Sunset', tags=['sea']
        )

        assert result.success
        assert result.state == UploadState.DONE
        photo = result.photo
        assert photo['title'] == {'en': 'Beach'}
        assert photo['description'] == {'en': 'Sunset'}
        assert photo['tags'] == ['sea']
        assert photo['album_id'] == 'album-1'
        assert photo['is_published'] is True
        assert photo['is_leading'] is False
        assert photo['content_hash'] == hash_content(sample_jpeg)
        assert photo['size'] == len(sample_jpeg)
        assert photo['filename'].endswith('-beach.jpg')

        storage = photo['storage']
        assert storage['provider'] == 'local'
        assert storage['path'] == f"summer/{photo['filename']}"
        assert set(result.thumbnails) == ALL_SIZES
        assert storage['thumbnails'] == result.thumbnails
        assert result.thumbnail_path == result.thumbnails['medium']
        assert result.blur_data_url.startswith('data:image/jpeg;base64,')

        files = stored_files(self.root)
        assert len(files) == 6
        assert storage['path'] in files
        for name, path in storage['thumbnail_paths'].items():
            assert path == f"summer/{name}/{name}-{photo['filename']}"
            assert path in files

        assert int(Album.get_album('album-1').photo_count) == 1

    def test_title_defaults_to_original_filename(self, sample_jpeg):
        result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg')

        assert result.success
        assert result.photo['title'] == {'en': 'beach.jpg'}
        assert result.photo['description'] == {'en': ''}
        assert result.photo['album_id'] is None
        assert result.photo['storage']['path'] == result.photo['filename']

    def test_duplicate_is_skipped(self, sample_jpeg):
        first = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg', album_id='album-1')
        files_before = stored_files(self.root)

        second = self.service.upload(sample_jpeg, 'copy.jpg', 'image/jpeg', album_id='album-1')

        assert not second.success
        assert second.skipped
        assert second.state == UploadState.SKIPPED
        assert 'fingerprint' in second.reason
        assert second.photo['photo_id'] == first.photo['photo_id']
        assert stored_files(self.root) == files_before
        assert int(Album.get_album('album-1').photo_count) == 1

    def test_replace_keeps_identity_and_swaps_files(self, sample_jpeg):
        with patch('gallery_ingest.services.upload_service.generate_storage_filename',
                   side_effect=['1000-beach.jpg', '2000-beach.jpg']):
            first = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg',
                                        album_id='album-1', title='Original title')
            second = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg', album_id='album-1',
                                         title='Ignored', replace_if_exists=True)

        assert second.success
        assert second.replaced
        assert second.photo['photo_id'] == first.photo['photo_id']
        assert second.photo['title'] == {'en': 'Original title'}
        assert second.photo['uploaded_at'] == first.photo['uploaded_at']
        assert second.photo['filename'] == '2000-beach.jpg'

        assert second.cleanup.attempted == 6
        assert second.cleanup.succeeded == 6
        files = stored_files(self.root)
        assert len(files) == 6
        assert all('2000-beach.jpg' in path for path in files)
        assert int(Album.get_album('album-1').photo_count) == 1

    def test_replace_with_different_bytes_matched_by_name_and_size(self, image_factory):
        """Same name and byte length, new pixels: the record takes the new fingerprint"""
        red = image_factory(fmt='BMP', color='red')
        blue = image_factory(fmt='BMP', color='blue')
        assert len(red) == len(blue) and red != blue

        with patch('gallery_ingest.services.upload_service.generate_storage_filename',
                   side_effect=['1000-sunset.bmp', '2000-sunset.bmp']):
            first = self.service.upload(red, 'sunset.bmp', 'image/bmp', album_id='album-1',
                                        title='Sunset', uploaded_by='user-7')
            second = self.service.upload(blue, 'sunset.bmp', 'image/bmp', album_id='album-1',
                                         title='Ignored', uploaded_by='user-8', replace_if_exists=True)

        assert second.success
        assert second.replaced
        photo = second.photo
        assert photo['photo_id'] == first.photo['photo_id']
        assert photo['content_hash'] == hash_content(blue)
        assert photo['content_hash'] != first.photo['content_hash']
        assert photo['size'] == len(blue)
        assert photo['storage']['path'] != first.photo['storage']['path']
        assert photo['title'] == {'en': 'Sunset'}
        assert photo['uploaded_by'] == 'user-7'
        assert photo['uploaded_at'] == first.photo['uploaded_at']
        assert int(Album.get_album('album-1').photo_count) == 1
        assert self.service.repository.find_by_fingerprint(hash_content(blue)).photo_id == photo['photo_id']

    def test_replace_stays_in_album_of_existing_photo(self, sample_jpeg):
        Album(album_id='a1', name='First', alias='aa').save()
        Album(album_id='a2', name='Second', alias='bb').save()

        first = self.service.upload(sample_jpeg, 'x.jpg', 'image/jpeg', album_id='a1')
        second = self.service.upload(sample_jpeg, 'x.jpg', 'image/jpeg', album_id='a2',
                                     replace_if_exists=True)

        assert second.success
        assert second.replaced
        assert second.photo['photo_id'] == first.photo['photo_id']
        assert second.photo['album_id'] == 'a1'
        assert second.photo['storage']['path'].startswith('aa/')
        files = stored_files(self.root)
        assert len(files) == 6
        assert all(path.startswith('aa/') for path in files)
        assert not (self.root / 'bb').exists()
        assert int(Album.get_album('a1').photo_count) == 1
        assert int(Album.get_album('a2').photo_count) == 0

    def test_stored_original_is_compressed(self, image_factory):
        raw = image_factory(2400, 1600)

        result = self.service.upload(raw, 'wide.jpg', 'image/jpeg', album_id='album-1')

        photo = result.photo
        stored = self.root / photo['storage']['path']
        with Image.open(stored) as image:
            assert image.size == (1200, 800)
        assert photo['size'] == len(raw)
        assert photo['content_hash'] == hash_content(raw)
        assert photo['stored_size'] == stored.stat().st_size
        assert photo['compression_ratio'] == round(photo['stored_size'] / len(raw), 4)
        assert photo['compression_ratio'] < 1
        assert photo['storage']['mime_type'] == 'image/jpeg'

    def test_non_jpeg_original_is_stored_as_jpg(self, image_factory):
        raw = image_factory(600, 400, fmt='BMP')

        result = self.service.upload(raw, 'scan.bmp', 'image/bmp')

        photo = result.photo
        assert photo['filename'].endswith('-scan.jpg')
        assert photo['mime_type'] == 'image/bmp'
        assert photo['storage']['mime_type'] == 'image/jpeg'
        with Image.open(self.root / photo['storage']['path']) as image:
            assert image.format == 'JPEG'
            assert image.size == (600, 400)

    def test_compression_can_be_disabled(self, image_factory, monkeypatch):
        monkeypatch.setenv('GALLERY_INGEST_COMPRESS_ORIGINALS', 'false')
        raw = image_factory(2400, 1600)

        result = self.service.upload(raw, 'wide.jpg', 'image/jpeg')

        assert (self.root / result.photo['storage']['path']).read_bytes() == raw
        assert result.photo['stored_size'] == len(raw)
        assert result.photo['compression_ratio'] == 1.0

    def test_partial_derivative_failure_still_succeeds(self, sample_jpeg):
        original_render = DerivativeGenerator._render_size

        def flaky_render(generator, data, geometry, spec):
            if spec.name == 'medium':
                raise OSError('encoder crashed')
            return original_render(generator, data, geometry, spec)

        with patch.object(DerivativeGenerator, '_render_size', flaky_render):
            result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg')

        assert result.success
        assert set(result.thumbnails) == ALL_SIZES - {'medium'}
        assert result.thumbnail_path == result.thumbnails['small']
        assert len(stored_files(self.root)) == 5

    def test_quarter_turned_image_geometry(self, rotated_jpeg):
        result = self.service.upload(rotated_jpeg, 'portrait.jpg', 'image/jpeg')

        geometry = result.photo['geometry']
        assert (geometry['native_width'], geometry['native_height']) == (400, 200)
        assert (geometry['display_width'], geometry['display_height']) == (200, 400)
        assert geometry['orientation'] == 6

    def test_camera_metadata_is_recorded(self, camera_jpeg):
        result = self.service.upload(camera_jpeg, 'canon.jpg', 'image/jpeg')

        assert result.metadata['make'] == 'Canon'
        assert result.photo['metadata']['model'] == 'EOS R5'
        assert result.photo['metadata']['gps']['longitude'] < 0

    def test_unsupported_format_errors_without_side_effects(self):
        result = self.service.upload(b'this is not an image', 'notes.jpg', 'image/jpeg', album_id='album-1')

        assert not result.success
        assert result.state == UploadState.ERRORED
        assert result.error
        assert stored_files(self.root) == []
        assert self.service.repository.find_by_fingerprint(hash_content(b'this is not an image')) is None
        assert int(Album.get_album('album-1').photo_count) == 0

    def test_missing_album_errors(self, sample_jpeg):
        result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg', album_id='ghost')

        assert result.state == UploadState.ERRORED
        assert "'ghost' not found" in result.error
        assert stored_files(self.root) == []

    def test_empty_data_is_rejected(self):
        result = self.service.upload(b'', 'beach.jpg', 'image/jpeg')

        assert result.state == UploadState.ERRORED
        assert result.error == 'Image data is empty'

    def test_cancelled_before_start(self, sample_jpeg):
        token = CancellationToken()
        token.cancel()

        result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg', cancel_token=token)

        assert result.state == UploadState.ERRORED
        assert result.error.startswith('Upload cancelled')
        assert result.cleanup is None
        assert stored_files(self.root) == []

    def test_cancelled_after_storing_rolls_back(self, sample_jpeg, monkeypatch):
        token = CancellationToken()
        original_store = self.service._store

        def store_then_cancel(*args, **kwargs):
            stored = original_store(*args, **kwargs)
            token.cancel()
            return stored

        monkeypatch.setattr(self.service, '_store', store_then_cancel)
        result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg', cancel_token=token)

        assert result.state == UploadState.ERRORED
        assert result.cleanup.attempted == 6
        assert result.cleanup.complete
        assert stored_files(self.root) == []
        assert self.service.repository.find_by_fingerprint(hash_content(sample_jpeg)) is None

    def test_persistence_failure_rolls_back_storage(self, sample_jpeg):
        with patch.object(self.service.repository, 'insert', side_effect=PersistenceError('write failed')):
            result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg', album_id='album-1')

        assert result.state == UploadState.ERRORED
        assert result.error == 'write failed'
        assert result.cleanup.succeeded == 6
        assert stored_files(self.root) == []
        assert int(Album.get_album('album-1').photo_count) == 0

    def test_album_counter_failure_is_not_fatal(self, sample_jpeg):
        with patch.object(self.service.repository, 'increment_album_photo_count',
                          side_effect=PersistenceError('throttled')):
            result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg', album_id='album-1')

        assert result.success
        assert int(Album.get_album('album-1').photo_count) == 0

    def test_uploader_falls_back_to_zero_id(self, sample_jpeg):
        result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg')
        assert result.photo['uploaded_by'] == RecordConstants.ZERO_USER_ID

    def test_uploader_falls_back_to_system_user(self, sample_jpeg):
        User(user_id='user-system', username='system').save()
        result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg')
        assert result.photo['uploaded_by'] == 'user-system'

    def test_explicit_uploader_wins(self, sample_jpeg):
        User(user_id='user-system', username='system').save()
        result = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg', uploaded_by='user-42')
        assert result.photo['uploaded_by'] == 'user-42'

    def test_result_serializes_state_value(self, sample_jpeg):
        payload = self.service.upload(sample_jpeg, 'beach.jpg', 'image/jpeg').to_dict()
        assert payload['state'] == 'done'
        assert payload['success'] is True


class TestUploadFromFolder:
    """Test cases for bulk folder import"""

    @pytest.fixture(autouse=True)
    def setup_service(self, mock_aws_services, test_config, tmp_path):
        self.service = UploadService(test_config)
        self.folder = tmp_path / 'import'
        self.folder.mkdir()

    def test_report_counts_each_outcome(self, sample_jpeg):
        (self.folder / 'a.jpg').write_bytes(sample_jpeg)
        (self.folder / 'b.jpg').write_bytes(sample_jpeg)
        (self.folder / 'c.png').write_bytes(b'broken')
        (self.folder / 'notes.txt').write_text('not an image')
        (self.folder / 'nested').mkdir()

        report = self.service.upload_from_folder(str(self.folder))

        assert report.total == 3
        assert report.successful == 1
        assert report.skipped == 1
        assert report.failed == 1
        assert report.successes[0]['filename'] == 'a.jpg'
        assert report.skipped_items[0]['filename'] == 'b.jpg'
        assert report.failures[0]['filename'] == 'c.png'

    def test_options_are_passed_to_each_upload(self, image_factory):
        Album(album_id='album-1', name='Trip').save()
        (self.folder / 'red.jpg').write_bytes(image_factory(color='red'))
        (self.folder / 'green.jpg').write_bytes(image_factory(color='green'))

        report = self.service.upload_from_folder(str(self.folder), album_id='album-1', tags=['trip'])

        assert report.successful == 2
        assert int(Album.get_album('album-1').photo_count) == 2

    def test_missing_folder_raises(self, tmp_path):
        with pytest.raises(ValidationError):
            self.service.upload_from_folder(str(tmp_path / 'missing'))
