from pathlib import Path
from typing import Union

ORIGINALS_DIR = "originals"
THUMBNAILS_DIR = "thumbnails"


class BlobStore:
    """
    檔案儲存服務
    以相對路徑讀寫 UPLOAD_DIR 底下的圖片檔
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def ensure_dirs(self) -> None:
        """確保原圖與縮圖目錄存在"""
        (self.root / ORIGINALS_DIR).mkdir(parents=True, exist_ok=True)
        (self.root / THUMBNAILS_DIR).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def rendition_path(directory: str, equipment_id: str, filename: str) -> str:
        """組出 {originals|thumbnails}/{equipment_id}/{filename} 相對路徑"""
        return f"{directory}/{equipment_id}/{filename}"

    def resolve(self, rel_path: str) -> Path:
        """將相對路徑轉為絕對路徑，拒絕跳出儲存根目錄的路徑"""
        path = (self.root / rel_path).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f"Path escapes blob root: {rel_path}")
        return path

    def write(self, rel_path: str, data: bytes) -> None:
        path = self.resolve(rel_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def read(self, rel_path: str) -> bytes:
        return self.resolve(rel_path).read_bytes()

    def exists(self, rel_path: str) -> bool:
        return self.resolve(rel_path).is_file()

    def delete(self, rel_path: str) -> None:
        """刪除檔案，檔案不存在時拋出 FileNotFoundError"""
        self.resolve(rel_path).unlink()
