
from .image_folder import ImageFolderSource, load_images_from_directory, load_in_memory_images_from_directory

__all__ = [
	"ImageFolderSource",
	"load_images_from_directory",
	"load_in_memory_images_from_directory",
]
