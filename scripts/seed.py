#!/usr/bin/env python3
"""
데모 데이터 생성 (1회성, 명시적으로 실행).

환경 변수: DATABASE_URL (선택, 기본 sqlite+aiosqlite:///./lumina.db)
데모 계정이 이미 있으면 아무것도 하지 않음.

사용 예시:
  python3 scripts/seed.py
"""
from lumina.seed import main

if __name__ == "__main__":
    main()
