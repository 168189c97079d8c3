"""Image annotation server: projects, images, labels, annotations and COCO export."""

__version__ = "0.1.0"
