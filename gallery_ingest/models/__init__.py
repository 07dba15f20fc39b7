from .photo import Photo, build_name_size_key
from .album import Album
from .user import User

__all__ = ['Photo', 'Album', 'User', 'build_name_size_key']
