from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.exceptions import ValidationError


@dataclass
class UploadedImage:
    """上傳的原始圖片"""

    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class Renditions:
    thumbnail: bytes
    original: bytes


def _to_rgb(img: Image.Image) -> Image.Image:
    # JPEG 不支援透明度，透明背景一律鋪白
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        background = Image.new("RGBA", img.size, (255, 255, 255, 255))
        background.alpha_composite(img.convert("RGBA"))
        return background.convert("RGB")
    if img.mode != "RGB":
        return img.convert("RGB")
    return img.copy()


def _encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buffer = BytesIO()
    img.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


class ImagePipeline:
    """
    圖片處理服務
    將上傳圖片轉為縮圖與正規化原圖，兩者皆輸出為 JPEG
    """

    def __init__(
        self,
        thumbnail_size: int = 300,
        thumbnail_quality: int = 80,
        original_max_size: int = 2000,
        original_quality: int = 90,
    ):
        self.thumbnail_size = thumbnail_size
        self.thumbnail_quality = thumbnail_quality
        self.original_max_size = original_max_size
        self.original_quality = original_quality

    def render(self, data: bytes) -> Renditions:
        """
        產生兩種版本

        - 縮圖：置中裁切為 thumbnail_size 見方
        - 原圖：等比縮放到 original_max_size 以內，不放大，不保留 EXIF

        Raises:
            ValidationError: 無法解析的圖片內容
        """
        try:
            with Image.open(BytesIO(data)) as source:
                source.load()
                img = _to_rgb(source)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise ValidationError("無法解析的圖片檔案", details={"reason": str(e)}) from e

        thumbnail = ImageOps.fit(
            img,
            (self.thumbnail_size, self.thumbnail_size),
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )

        original = img.copy()
        original.thumbnail(
            (self.original_max_size, self.original_max_size), Image.Resampling.LANCZOS
        )

        return Renditions(
            thumbnail=_encode_jpeg(thumbnail, self.thumbnail_quality),
            original=_encode_jpeg(original, self.original_quality),
        )
