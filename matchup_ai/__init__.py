"""1v1 매치업 분류 / 캐시 / 팀 전략 평가 (싱글 배틀)."""
