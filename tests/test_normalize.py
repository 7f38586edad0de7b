from weekly_menu.normalize import flatten_text, fold_width


def test_flatten_removes_all_whitespace():
    raw = '今週の週替わり定食\n9. チキン南蛮\n 800円\n15.\t豚の生姜焼き　750円\n'
    assert flatten_text(raw) == '今週の週替わり定食9.チキン南蛮800円15.豚の生姜焼き750円'


def test_flatten_empty_and_non_string():
    assert flatten_text('') == ''
    assert flatten_text(None) == ''
    assert flatten_text(' \n\t　') == ''


def test_fold_width_converts_full_width_digits():
    assert fold_width('９．カレー８００円') == '9.カレー800円'
    assert fold_width('') == ''
