"""Kütüphane - Servisler Paketi

Bu paket harici entegrasyonlar için servis modüllerini içerir:
- ISBN arama servisi (Open Library + Google Books yedeği)
- Üyelik kimlik kartı (PDF) oluşturucu
- HTTP istemci soyutlaması
"""
