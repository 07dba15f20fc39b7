"""
Pytest configuration and fixtures for gallery-ingest tests
Provides AWS mocking, test tables, storage roots and generated test images
"""
import io
import os
import pytest
import boto3
from moto import mock_aws
from PIL import Image, ExifTags


# Set test environment variables before any gallery_ingest import
os.environ.update({
    'AWS_DEFAULT_REGION': 'us-east-1',
    'AWS_ACCESS_KEY_ID': 'testing',
    'AWS_SECRET_ACCESS_KEY': 'testing',
    'AWS_SECURITY_TOKEN': 'testing',
    'AWS_SESSION_TOKEN': 'testing',
    'ENVIRONMENT': 'test',
    'CONFIG_USE_SSM': 'false',
    'PHOTO_TABLE_NAME': 'Photos-test',
    'ALBUM_TABLE_NAME': 'Albums-test',
    'USER_TABLE_NAME': 'Users-test',
})

TEST_BUCKET = 'gallery-photos-test'


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto"""
    os.environ.update({
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing'
    })


@pytest.fixture
def mock_aws_services(aws_credentials):
    """DynamoDB tables and an S3 bucket under moto"""
    with mock_aws():
        create_test_tables()
        s3 = boto3.client('s3', region_name='us-east-1')
        s3.create_bucket(Bucket=TEST_BUCKET)

        yield {
            'dynamodb': boto3.resource('dynamodb', region_name='us-east-1'),
            's3': s3,
            'bucket': TEST_BUCKET
        }


def create_test_tables():
    """Create DynamoDB test tables"""
    dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

    photo_table = dynamodb.create_table(
        TableName='Photos-test',
        KeySchema=[
            {'AttributeName': 'photo_id', 'KeyType': 'HASH'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'photo_id', 'AttributeType': 'S'},
            {'AttributeName': 'content_hash', 'AttributeType': 'S'},
            {'AttributeName': 'name_size_key', 'AttributeType': 'S'}
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': 'content-hash-index',
                'KeySchema': [
                    {'AttributeName': 'content_hash', 'KeyType': 'HASH'}
                ],
                'Projection': {'ProjectionType': 'ALL'}
            },
            {
                'IndexName': 'name-size-index',
                'KeySchema': [
                    {'AttributeName': 'name_size_key', 'KeyType': 'HASH'}
                ],
                'Projection': {'ProjectionType': 'ALL'}
            }
        ],
        BillingMode='PAY_PER_REQUEST'
    )

    album_table = dynamodb.create_table(
        TableName='Albums-test',
        KeySchema=[
            {'AttributeName': 'album_id', 'KeyType': 'HASH'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'album_id', 'AttributeType': 'S'}
        ],
        BillingMode='PAY_PER_REQUEST'
    )

    user_table = dynamodb.create_table(
        TableName='Users-test',
        KeySchema=[
            {'AttributeName': 'user_id', 'KeyType': 'HASH'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'user_id', 'AttributeType': 'S'},
            {'AttributeName': 'username', 'AttributeType': 'S'}
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': 'username-index',
                'KeySchema': [
                    {'AttributeName': 'username', 'KeyType': 'HASH'}
                ],
                'Projection': {'ProjectionType': 'ALL'}
            }
        ],
        BillingMode='PAY_PER_REQUEST'
    )

    photo_table.wait_until_exists()
    album_table.wait_until_exists()
    user_table.wait_until_exists()


@pytest.fixture
def storage_root(tmp_path, monkeypatch):
    """Local storage root for the default provider"""
    root = tmp_path / 'uploads'
    monkeypatch.setenv('GALLERY_INGEST_LOCAL_STORAGE_PATH', str(root))
    return root


@pytest.fixture
def test_config(storage_root):
    """Config reading only environment variables and defaults"""
    from gallery_ingest.config import Config
    return Config(environment='test', use_ssm=False)


def build_image(width=400, height=200, color='red', fmt='JPEG', mode='RGB',
                orientation=None, exif_fields=None, exif_ifd=None, gps_ifd=None):
    """
    Render a solid test image

    Args:
        orientation: EXIF orientation tag to embed (JPEG only)
        exif_fields: Extra IFD0 tags {tag: value}
        exif_ifd: Tags for the Exif sub-IFD
        gps_ifd: Tags for the GPS sub-IFD
    """
    img = Image.new(mode, (width, height), color=color)
    buffer = io.BytesIO()
    save_kwargs = {'format': fmt}

    if orientation is not None or exif_fields or exif_ifd or gps_ifd:
        exif = Image.Exif()
        if orientation is not None:
            exif[ExifTags.Base.Orientation] = orientation
        for tag, value in (exif_fields or {}).items():
            exif[tag] = value
        if exif_ifd:
            exif[ExifTags.IFD.Exif] = exif_ifd
        if gps_ifd:
            exif[ExifTags.IFD.GPSInfo] = gps_ifd
        save_kwargs['exif'] = exif

    if fmt == 'JPEG':
        save_kwargs['quality'] = 90
    img.save(buffer, **save_kwargs)
    return buffer.getvalue()


@pytest.fixture
def image_factory():
    """Factory producing encoded test images"""
    return build_image


@pytest.fixture
def sample_jpeg():
    """Landscape 400x200 JPEG without EXIF"""
    return build_image(400, 200)


@pytest.fixture
def rotated_jpeg():
    """Native 400x200 JPEG tagged orientation 6 (displays as 200x400)"""
    return build_image(400, 200, color='blue', orientation=6)


@pytest.fixture
def transparent_png():
    """RGBA PNG with a transparent background"""
    return build_image(300, 300, color=(0, 0, 0, 0), fmt='PNG', mode='RGBA')


@pytest.fixture
def camera_jpeg():
    """JPEG carrying camera, exposure, date and GPS tags"""
    return build_image(
        640, 480,
        exif_fields={
            ExifTags.Base.Make: 'Canon',
            ExifTags.Base.Model: 'EOS R5',
            ExifTags.Base.Software: 'Firmware 1.8',
            ExifTags.Base.DateTime: '2023:06:15 18:00:00',
        },
        exif_ifd={
            ExifTags.Base.DateTimeOriginal: '2023:06:15 14:30:00',
            ExifTags.Base.ExposureTime: 0.008,
            ExifTags.Base.FNumber: 2.8,
            ExifTags.Base.ISOSpeedRatings: 200,
            ExifTags.Base.FocalLength: 50.0,
        },
        gps_ifd={
            ExifTags.GPS.GPSLatitudeRef: 'N',
            ExifTags.GPS.GPSLatitude: (40.0, 43.0, 5.67),
            ExifTags.GPS.GPSLongitudeRef: 'W',
            ExifTags.GPS.GPSLongitude: (74.0, 0.0, 21.34),
            ExifTags.GPS.GPSAltitude: 10.5,
        }
    )
