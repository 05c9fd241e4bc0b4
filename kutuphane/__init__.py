"""Kütüphane Yönetim Sistemi - Çekirdek Uygulama Paketi

Bu paket şu modülleri içerir:
- REST API uç noktaları (api.py)
- Katalog, kiralama, öneri ve alım önerisi mantığı
- Kimlik doğrulama ve yetkilendirme politikası (auth.py)
- Veri modelleri (models.py) ve veritabanı katmanı (database.py)
- CLI arayüzü (cli.py)
"""

__version__ = "1.0.0"
